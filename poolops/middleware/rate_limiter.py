"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in poolops/__init__.py with no default limits; this module applies
granular limits per route category.

Usage:
    from poolops.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "120/minute"
READ_LIMIT = "300/minute"
RESET_LIMIT = "10/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Field workflow (maintenance):  120/minute
        - Catalog, schedule, desk:       300/minute
        - Company reset:                 10/minute
        - Health check:                  exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("maintenance")
    if bp:
        limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in ("parameters", "schedule", "notification_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT)(bp)

    reset_view = app.view_functions.get("maintenance.reset")
    if reset_view is not None:
        app.view_functions["maintenance.reset"] = limiter.limit(RESET_LIMIT)(reset_view)

    health_view = app.view_functions.get("health")
    if health_view is not None:
        limiter.exempt(health_view)

    app.logger.info(
        "Rate limiter configured: maintenance: %s, catalog/schedule/desk: %s, reset: %s",
        WRITE_LIMIT, READ_LIMIT, RESET_LIMIT,
    )
