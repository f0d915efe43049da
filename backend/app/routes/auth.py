# Overview: Flask API routes for account registration, login and logout.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderEngineError
from ..models import UserRole
from ..services import session_service, user_service
from ..services.user_service import AuthenticationError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-service registration.

    Request body:
        {"name": ..., "email": ..., "password": ..., "role": "Public" | "Wholesale", "phone": ...}

    Wholesale accounts are created inactive and must be activated by an admin.
    """
    data = request.get_json(silent=True) or {}
    try:
        role = UserRole(data.get("role") or UserRole.PUBLIC.value)
    except ValueError:
        return jsonify({"error": "role must be Public or Wholesale"}), 400

    try:
        user = user_service.register_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=role,
            phone=data.get("phone"),
        )
        return jsonify({"user": user.to_dict()}), 201
    except OrderEngineError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = user_service.authenticate(email, password)
        _, token = session_service.create_session(user)
        return jsonify({"token": token, "user": user.to_dict()}), 200
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
