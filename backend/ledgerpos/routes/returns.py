# Overview: Flask API routes for returns; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerPosError
from ..services import return_service
from ..services.return_service import ReturnRequest
from ..validation import int_field

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
def create_return_route():
    """
    Execute a return against a committed sale.

    Body: company_id, original_transaction_id, lines[{product_id, batch_id,
    quantity, serial_numbers?}], refund_method (Cash | Credit Note), reason?,
    total_refund_cents?, created_by?
    """
    try:
        return_request = ReturnRequest.from_dict(request.get_json(silent=True) or {})
        result = return_service.execute_return(return_request)
        return jsonify(result.to_dict()), 201

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to execute return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/<int:return_id>")
def get_return_route(return_id: int):
    try:
        company_id = int_field(request.args, "company_id")
        rtn = return_service.get_return(return_id, company_id)
        if rtn is None:
            return jsonify({"error": "Return not found"}), 404
        return jsonify({"return": rtn.to_dict(include_lines=True)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("")
def list_returns_route():
    try:
        company_id = int_field(request.args, "company_id", required=True)
        original_id = int_field(request.args, "original_transaction_id")
        returns = return_service.list_returns(company_id, original_id)
        return jsonify({"returns": [r.to_dict() for r in returns], "count": len(returns)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list returns")
        return jsonify({"error": "Internal server error"}), 500
