# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, jsonify, request


def require_actor(f):
    """
    Require the acting user id on mutating routes.

    The upstream identity layer authenticates the caller and forwards its id
    in the X-User-Id header. Sets g.actor_user_id for created_by_user_id.

    Returns 401 if the header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get("X-User-Id") or "").strip()
        if not raw.isdigit() or int(raw) <= 0:
            return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED", "details": {}}), 401

        g.actor_user_id = int(raw)
        return f(*args, **kwargs)

    return decorated_function
