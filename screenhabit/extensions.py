from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf import CSRFProtect
from flask_login import LoginManager, current_user
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()

login_manager = LoginManager()
login_manager.session_protection = "basic"


@login_manager.unauthorized_handler
def _unauthorized():
    # JSON API: there is no login page to redirect to
    return {"success": False, "message": "Authentication required"}, 401


def rate_limit_key() -> str:
    """Signed-in callers are limited per account, everyone else per client IP."""
    if getattr(current_user, "is_authenticated", False):
        return f"user:{current_user.get_id()}"
    return f"ip:{get_remote_address()}"


# Storage URI comes from create_app() before init_app
limiter = Limiter(key_func=rate_limit_key)
