# Overview: Flask API routes for POS sales; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerPosError
from ..services import sales_service
from ..services.sales_service import SaleRequest
from ..validation import int_field

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Execute a sale: inventory, sale record, ledger facts and payment in one transaction.

    Body: company_id, lines[{product_id, batch_id, quantity, unit_price_cents,
    serial_numbers?}], paid_amount_cents, payment_method, discount_cents,
    tax_cents, subtotal_cents?, total_payable_cents?, linked_entity_id?, created_by?
    """
    try:
        sale_request = SaleRequest.from_dict(request.get_json(silent=True) or {})
        result = sales_service.execute_sale(sale_request)
        return jsonify(result.to_dict()), 201

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to execute sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        company_id = int_field(request.args, "company_id")
        sale = sales_service.get_sale(sale_id, company_id)
        if sale is None:
            return jsonify({"error": "Sale not found"}), 404
        data = sale.to_dict(include_lines=True)
        data["payments"] = [p.to_dict() for p in sale.payments]
        return jsonify({"sale": data}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    try:
        company_id = int_field(request.args, "company_id", required=True)
        limit = int_field(request.args, "limit", 100)
        sales = sales_service.list_sales(company_id, limit)
        return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500
