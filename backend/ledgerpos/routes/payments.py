# Overview: Flask API routes for receivable settlements; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerPosError
from ..models import PaymentMethod
from ..services import payment_service
from ..validation import int_field, str_field

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
def record_payment_route():
    """
    Record a customer payment against an open sale.

    Body: company_id, sale_id, amount_cents, payment_method?, payment_reference?, created_by?
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.record_customer_payment(
            company_id=int_field(data, "company_id", required=True),
            sale_id=int_field(data, "sale_id", required=True),
            amount_cents=int_field(data, "amount_cents", required=True),
            payment_method=str_field(data, "payment_method") or PaymentMethod.CASH.value,
            created_by=int_field(data, "created_by"),
            payment_reference=str_field(data, "payment_reference", max_len=128),
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("")
def list_payments_route():
    try:
        company_id = int_field(request.args, "company_id", required=True)
        sale_id = int_field(request.args, "sale_id")
        payments = payment_service.list_payments(company_id, sale_id)
        return jsonify({"payments": [p.to_dict() for p in payments], "count": len(payments)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500
