from flask_talisman import Talisman

# JSON-only API: nothing here renders scripts, styles or frames
API_CSP = {
    "default-src": ["'none'"],
    "connect-src": ["'self'", "https://api.stripe.com"],
    "form-action": ["'self'", "https://checkout.stripe.com", "https://billing.stripe.com"],
    "frame-ancestors": ["'none'"],
    "base-uri": ["'none'"],
}

def init_security(app):
    """HTTPS redirect, HSTS and a locked-down CSP for staging/production."""
    Talisman(
        app,
        content_security_policy=API_CSP,
        force_https=app.config.get("FORCE_HTTPS", True),
        strict_transport_security=True,
        strict_transport_security_max_age=31536000,
        session_cookie_secure=True,
        frame_options="DENY",
        referrer_policy="no-referrer",
    )
