from flask import request, jsonify
from flask_wtf.csrf import generate_csrf
from . import bp
from screenhabit.utils.helpers import success_response


def detect_os(user_agent: str) -> str:
    if "Mac OS X" in user_agent:
        return "mac"
    if "Windows" in user_agent:
        return "windows"
    if "Linux" in user_agent:
        return "linux"
    return "unknown"


@bp.get("/detect-os")
def detect_os_view():
    ua = request.headers.get("User-Agent", "")
    return jsonify(success_response({"os": detect_os(ua), "userAgent": ua}, "OS detected successfully"))


@bp.get("/csrf-token")
def csrf_token():
    """Token for the SPA; send it back as X-CSRFToken on JSON POSTs."""
    return jsonify(success_response({"csrfToken": generate_csrf()}))
