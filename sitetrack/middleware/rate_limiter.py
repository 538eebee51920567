"""
Rate limiting configuration.

The Limiter instance is created in sitetrack/__init__.py with no default
limits; this module applies limits to the credential endpoints, which are
the only unauthenticated write routes.

Usage:
    from sitetrack.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

CREDENTIAL_LIMIT = "10/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits (per remote IP):
        - /auth/login, /auth/register:  10/minute
        - Health check:                 exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for endpoint in ("auth_bp.login", "auth_bp.register"):
        view = app.view_functions.get(endpoint)
        if view is not None:
            app.view_functions[endpoint] = limiter.limit(CREDENTIAL_LIMIT)(view)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured for credential endpoints: %s", CREDENTIAL_LIMIT)
