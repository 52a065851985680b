from flask import Blueprint

bp = Blueprint("api", __name__)

from . import usage  # noqa: E402,F401
from . import meta  # noqa: E402,F401
