"""
PoolOps: Pool Maintenance Operations
Blueprint registry and shared request helpers.
"""

from flask import current_app, request

from poolops.core.exceptions import ValidationError


def paginate_query(query, default_limit=None, max_limit=None):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit : max items (default DEFAULT_PAGE_SIZE, capped at MAX_PAGE_SIZE)
        offset: starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    default_limit = default_limit or current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    max_limit = max_limit or current_app.config.get("MAX_PAGE_SIZE", 200)
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def company_id_required() -> int:
    """Extract company_id from the query string or JSON body.

    Raises:
        ValidationError: when absent or not an integer.
    """
    cid = request.args.get("company_id")
    if cid is None:
        data = request.get_json(silent=True)
        if isinstance(data, dict):
            cid = data.get("company_id")
    if cid is None or cid == "":
        raise ValidationError("company_id is required", details={"company_id": "is required"})
    try:
        return int(cid)
    except (TypeError, ValueError) as exc:
        raise ValidationError("company_id must be an integer", details={"company_id": "invalid"}) from exc


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
