# Overview: Flask API routes for admin account management (wholesale verification).

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderEngineError
from ..models import UserRole
from ..services import user_service
from ..decorators import require_auth, require_permission


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    """
    List accounts.

    Query parameters:
        role: Public | Wholesale | Admin | Logistics
        pending: "true" to list only accounts awaiting activation
    """
    role_param = request.args.get("role")
    try:
        role = UserRole(role_param) if role_param else None
    except ValueError:
        return jsonify({"error": f"Unknown role '{role_param}'"}), 400

    pending_only = request.args.get("pending", "").lower() in ("1", "true", "yes")
    users = user_service.list_users(role=role, pending_only=pending_only)
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@admin_bp.post("/users/<user_id>/activate")
@require_auth
@require_permission("MANAGE_USERS")
def activate_user_route(user_id: str):
    try:
        user = user_service.activate_user(user_id, admin=g.current_user)
        return jsonify({"user": user.to_dict()}), 200
    except OrderEngineError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to activate user")
        return jsonify({"error": "Internal server error"}), 500
