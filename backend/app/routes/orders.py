# Overview: Flask API routes for the order lifecycle; parses input and returns JSON responses.

"""
Order Lifecycle API Routes

- POST /api/orders/                      - Checkout (create order)
- GET  /api/orders/                      - List orders (own orders for buyers, all for staff)
- GET  /api/orders/:id                   - Get one order
- POST /api/orders/:id/payment-proof     - Buyer uploads bank transfer proof
- POST /api/orders/:id/verify-payment    - Admin approves/rejects proof
- POST /api/orders/:id/approve           - Admin approves order, inventory synced
- POST /api/orders/:id/logistics         - Logistics advances fulfillment one step

SECURITY:
- Acting user is always g.current_user, never taken from the request body.
- Routes gate on permissions; the engine re-checks roles and ownership.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderEngineError
from ..services import order_service
from ..decorators import require_auth, require_permission, require_any_permission


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _engine_error(e: OrderEngineError):
    return jsonify(e.to_dict()), e.http_status


@orders_bp.post("/")
@require_auth
@require_permission("PLACE_ORDER")
def create_order_route():
    """
    Create an order from cart contents.

    Request body:
        {
            "items": [{"product_id": "p1", "quantity": 2}, ...],
            "shipping_address": "...",
            "payment_method": "Bank Transfer",
            "total_amount": "7000.00"    // optional cart total, informational
        }
    """
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(
            g.current_user.id,
            data.get("items") or [],
            data.get("shipping_address"),
            data.get("payment_method"),
            total_amount=data.get("total_amount"),
        )
        return jsonify({"order": order.to_dict()}), 201
    except OrderEngineError as e:
        return _engine_error(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/")
@require_auth
@require_any_permission("VIEW_OWN_ORDERS", "VIEW_ALL_ORDERS")
def list_orders_route():
    try:
        orders = order_service.list_orders(viewer=g.current_user, status=request.args.get("status"))
    except OrderEngineError as e:
        return _engine_error(e)
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<order_id>")
@require_auth
@require_any_permission("VIEW_OWN_ORDERS", "VIEW_ALL_ORDERS")
def get_order_route(order_id: str):
    try:
        order = order_service.get_order(order_id, viewer=g.current_user)
    except OrderEngineError as e:
        return _engine_error(e)
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.post("/<order_id>/payment-proof")
@require_auth
@require_permission("SUBMIT_PAYMENT_PROOF")
def submit_payment_proof_route(order_id: str):
    """Request body: {"proof_ref": "<uploaded receipt location>"}"""
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.submit_payment_proof(order_id, g.current_user.id, data.get("proof_ref"))
        return jsonify({"order": order.to_dict()}), 200
    except OrderEngineError as e:
        return _engine_error(e)
    except Exception:
        current_app.logger.exception("Failed to submit payment proof")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/verify-payment")
@require_auth
@require_permission("VERIFY_PAYMENTS")
def verify_payment_route(order_id: str):
    """Request body: {"approved": true | false}"""
    data = request.get_json(silent=True) or {}
    approved = data.get("approved")
    if not isinstance(approved, bool):
        return jsonify({"error": "approved must be true or false"}), 400

    try:
        order = order_service.verify_payment(order_id, g.current_user.id, approved)
        return jsonify({"order": order.to_dict()}), 200
    except OrderEngineError as e:
        return _engine_error(e)
    except Exception:
        current_app.logger.exception("Failed to verify payment")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/approve")
@require_auth
@require_permission("APPROVE_ORDERS")
def approve_order_route(order_id: str):
    try:
        order = order_service.approve_order(order_id, g.current_user.id)
        return jsonify({"order": order.to_dict()}), 200
    except OrderEngineError as e:
        return _engine_error(e)
    except Exception:
        current_app.logger.exception("Failed to approve order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/logistics")
@require_auth
@require_permission("UPDATE_LOGISTICS")
def advance_logistics_route(order_id: str):
    """Request body: {"status": "Packed" | "Dispatched" | "Delivered"}"""
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return jsonify({"error": "status required"}), 400

    try:
        order = order_service.advance_logistics(order_id, g.current_user.id, data["status"])
        return jsonify({"order": order.to_dict()}), 200
    except OrderEngineError as e:
        return _engine_error(e)
    except Exception:
        current_app.logger.exception("Failed to update logistics status")
        return jsonify({"error": "Internal server error"}), 500
