import logging
import importlib
import pkgutil
from logging.config import fileConfig
from pathlib import Path

from flask import current_app
from alembic import context

config = context.config

_ini = config.config_file_name
if _ini and Path(_ini).exists():
    fileConfig(_ini)
else:
    logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("alembic.env")


def _engine():
    # Flask-SQLAlchemy >= 3.x exposes .engine directly
    return current_app.extensions["migrate"].db.engine


def _engine_url() -> str:
    return _engine().url.render_as_string(hide_password=False).replace("%", "%%")


def _metadata():
    """Every screenhabit.models module imported, so autogenerate sees all tables."""
    import screenhabit.models as models_pkg
    for mod in pkgutil.iter_modules(models_pkg.__path__):
        importlib.import_module(f"screenhabit.models.{mod.name}")
    return current_app.extensions["migrate"].db.metadata


def _include_object(object, name, type_, reflected, compare_to):
    # Never propose dropping an index that only exists in the database
    if type_ == "index" and reflected and compare_to is None:
        return False
    return True


config.set_main_option("sqlalchemy.url", _engine_url())


def run_migrations_offline():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=_metadata(),
        literal_binds=True,
        compare_type=True,
        include_object=_include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    def process_revision_directives(context_, revision, directives):
        if getattr(config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
            directives[:] = []
            logger.info("No changes in schema detected.")

    conf_args = {
        **current_app.extensions["migrate"].configure_args,
        "process_revision_directives": process_revision_directives,
        "compare_type": True,
        "include_object": _include_object,
        "target_metadata": _metadata(),
    }

    with _engine().connect() as connection:
        context.configure(connection=connection, **conf_args)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
