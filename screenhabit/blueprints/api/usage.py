from flask import request, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy import func
from . import bp
from screenhabit.extensions import db, limiter
from screenhabit.errors import ValidationError
from screenhabit.models import Download, UsageStat, PLATFORMS
from screenhabit.security.entitlements import require_active_subscription
from screenhabit.utils.helpers import success_response


def _client_ip() -> str:
    # ProxyFix (production) rewrites remote_addr from X-Forwarded-For
    return request.remote_addr or "unknown"


@bp.post("/downloads")
@limiter.limit("30/minute")
def track_download():
    data = request.get_json(silent=True) or {}
    platform = (data.get("platform") or "").strip().lower()
    version = (data.get("version") or "").strip()
    if platform not in PLATFORMS:
        raise ValidationError(f"platform must be one of: {', '.join(PLATFORMS)}")
    if not version:
        raise ValidationError("version is required")

    download = Download(
        user_id=current_user.id if current_user.is_authenticated else None,
        platform=platform,
        version=version[:32],
        ip_address=_client_ip(),
    )
    db.session.add(download)
    db.session.commit()
    return jsonify(success_response(download.to_dict(), "Download tracked successfully"))


@bp.get("/downloads/stats")
def download_stats():
    rows = (
        db.session.query(Download.platform, func.count(Download.id))
        .group_by(Download.platform)
        .order_by(Download.platform)
        .all()
    )
    stats = [{"platform": platform, "count": count} for platform, count in rows]
    return jsonify(success_response(stats, "Download statistics fetched successfully"))


@bp.get("/usage-stats")
@login_required
@require_active_subscription
def usage_stats():
    limit = current_app.config.get("USAGE_STATS_LIMIT", 30)
    rows = (
        UsageStat.query.filter_by(user_id=current_user.id)
        .order_by(UsageStat.date.desc(), UsageStat.id.desc())
        .limit(limit)
        .all()
    )
    return jsonify(success_response([r.to_dict() for r in rows], "Usage statistics fetched successfully"))
