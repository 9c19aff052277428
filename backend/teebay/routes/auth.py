# Overview: Account routes; registration, login, logout and the current-user probe.

"""
Identity endpoints.

register and login both answer with the user, a plaintext bearer token and
the session record; the token is what clients send back as
"Authorization: Bearer <token>".
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import MarketplaceError, ValidationError
from ..extensions import db
from ..models import User
from ..services import auth_service, session_service
from ..decorators import require_auth
from ..validation import require_json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _signed_in(user: User, status: int, **extra):
    record, token = session_service.create_session(
        db.session,
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    body = {"user": user.to_dict(), "token": token, "session": record.to_dict()}
    body.update(extra)
    return jsonify(body), status


@auth_bp.post("/register")
def register_route():
    """Body: first_name, last_name, email, address, phone_number, password"""
    try:
        data = require_json_object(request.get_json(silent=True))
        user = auth_service.register_user(
            db.session,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            email=data.get("email"),
            address=data.get("address"),
            phone_number=data.get("phone_number"),
            password=data.get("password"),
        )
        return _signed_in(user, 201)
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Registration failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    try:
        data = require_json_object(request.get_json(silent=True))
        if not data.get("email") or not data.get("password"):
            raise ValidationError("email and password required")
        user = auth_service.authenticate(db.session, data["email"], data["password"])
        return _signed_in(user, 200, message="Login successful")
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = session_service.extract_bearer_token(request.headers.get("Authorization"))
    session_service.revoke_session(db.session, token)
    current_app.logger.info("User %s logged out", g.current_user_id)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = db.session.get(User, g.current_user_id)
    return jsonify({"user": user.to_dict()}), 200
