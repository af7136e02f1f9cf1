# Overview: Flask API routes for ledger reads and balances; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerPosError, ValidationError
from ..services import balance_service, ledger_service
from ..validation import datetime_field, int_field, str_field

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("/entries")
def list_entries_route():
    """
    Query ledger entries.

    Query params: company_id (required), account, entry_type, transaction_type,
    account_id, linked_entity_id, transaction_id, start, end (ISO-8601, inclusive), limit
    """
    try:
        args = request.args
        try:
            entries = ledger_service.list_entries(
                int_field(args, "company_id", required=True),
                account=str_field(args, "account"),
                entry_type=str_field(args, "entry_type"),
                transaction_type=str_field(args, "transaction_type"),
                account_id=int_field(args, "account_id"),
                linked_entity_id=int_field(args, "linked_entity_id"),
                transaction_id=str_field(args, "transaction_id"),
                start=datetime_field(args, "start"),
                end=datetime_field(args, "end"),
                limit=int_field(args, "limit"),
            )
        except ValueError as e:
            # Unknown enum value in a filter
            raise ValidationError(str(e)) from e
        return jsonify({"entries": [e.to_dict() for e in entries], "count": len(entries)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list ledger entries")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/accounts/<int:account_id>/balance")
def account_balance_route(account_id: int):
    try:
        return jsonify({"balance": balance_service.get_account_balance(account_id)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to derive account balance")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/summary")
def summary_route():
    try:
        args = request.args
        company_id = int_field(args, "company_id", required=True)
        start = datetime_field(args, "start")
        end = datetime_field(args, "end")
        summary = balance_service.get_company_summary(company_id, start, end)
        summary["by_account"] = ledger_service.sum_by_account(company_id, start, end)
        return jsonify({"summary": summary}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build ledger summary")
        return jsonify({"error": "Internal server error"}), 500
