# Overview: Flask API routes for reading the audit log.

from flask import Blueprint, request, jsonify

from ..services import audit_service
from ..decorators import require_auth, require_permission


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("/")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_audit_route():
    """
    Most recent entries first.

    Query parameters:
        target_id: filter by order/product/user id
        action: filter by action name (e.g. APPROVE_ORDER)
        limit: max entries (default 200, max 1000)
    """
    try:
        limit = min(int(request.args.get("limit", 200)), 1000)
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400

    entries = audit_service.list_entries(
        target_id=request.args.get("target_id"),
        action=request.args.get("action"),
        limit=limit,
    )
    return jsonify({"entries": [e.to_dict() for e in entries]}), 200
