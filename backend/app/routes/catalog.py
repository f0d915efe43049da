# Overview: Flask API routes for catalog reads; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..errors import NotFoundError
from ..services import catalog_service


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/products")


@catalog_bp.get("/")
def list_products_route():
    """
    List products.

    Public endpoint; the storefront renders the catalog before login.

    Query parameters:
        category: exact category filter
        q: case-insensitive search on name, SKU and category
    """
    products = catalog_service.list_products(
        category=request.args.get("category"),
        search=request.args.get("q"),
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@catalog_bp.get("/<product_id>")
def get_product_route(product_id: str):
    try:
        product = catalog_service.lookup_product(product_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    return jsonify({"product": product.to_dict()}), 200
