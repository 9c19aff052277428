# Overview: Request identity decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import AuthenticationError
from .extensions import db
from .services import session_service


def resolve_identity(f):
    """
    Resolve the caller without requiring one.

    Sets g.current_user_id to the authenticated user id, or None for
    anonymous callers (missing, malformed, expired or revoked tokens).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.current_user_id = session_service.resolve_user_id(
            db.session, request.headers.get("Authorization")
        )
        return f(*args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require an authenticated caller.

    SECURITY: Returns a uniform 401 "Unauthorized" whatever the reason
    (no header, bad token, expired or revoked session).
    """
    @resolve_identity
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.current_user_id is None:
            return jsonify(AuthenticationError().to_dict()), 401
        return f(*args, **kwargs)

    return decorated_function
