# Overview: Flask API routes for batch inventory; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerPosError
from ..services import inventory_service
from ..validation import bool_field, datetime_field, int_field, str_field, str_list_field

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/batches")
def receive_batch_route():
    """
    Receive a new batch from a vendor.

    Body: company_id, product_id, vendor_id?, batch_code, quantity,
    purchase_price_cents, selling_price_cents, expires_at?, serial_numbers?,
    post_purchase (default true), created_by?
    """
    try:
        data = request.get_json(silent=True) or {}
        batch = inventory_service.receive_batch(
            company_id=int_field(data, "company_id", required=True),
            product_id=int_field(data, "product_id", required=True),
            vendor_id=int_field(data, "vendor_id"),
            batch_code=str_field(data, "batch_code", required=True, max_len=64),
            quantity=int_field(data, "quantity", required=True),
            purchase_price_cents=int_field(data, "purchase_price_cents", required=True),
            selling_price_cents=int_field(data, "selling_price_cents", required=True),
            expires_at=datetime_field(data, "expires_at"),
            serial_numbers=str_list_field(data, "serial_numbers"),
            created_by=int_field(data, "created_by"),
            post_purchase=bool_field(data, "post_purchase", True),
        )
        return jsonify({"batch": batch.to_dict()}), 201

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive batch")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/available")
def available_route():
    try:
        company_id = int_field(request.args, "company_id", required=True)
        include_batches = bool_field(request.args, "include_batches", False)
        items = inventory_service.find_available(company_id, include_batches=include_batches)
        return jsonify({"items": items, "count": len(items)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list available inventory")
        return jsonify({"error": "Internal server error"}), 500
