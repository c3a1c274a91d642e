# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Require the acting user's id from the identity provider.

    Authentication happens upstream (gateway / identity service); this layer
    only records the identity it is given. Sets g.user_id.

    Returns 401 if the header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not raw:
            return jsonify({"error": "Authentication required"}), 401
        if not raw.isdigit() or int(raw) <= 0:
            return jsonify({"error": f"Invalid {ACTOR_HEADER} header"}), 401

        g.user_id = int(raw)
        return f(*args, **kwargs)

    return decorated_function
