# Overview: Flask API routes for expenses; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerPosError, ValidationError
from ..models import LedgerAccount
from ..services import expense_service
from ..validation import datetime_field, int_field, str_field

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


def _account(data: dict, name: str, default: LedgerAccount) -> LedgerAccount:
    value = str_field(data, name)
    if value is None:
        return default
    try:
        return LedgerAccount(value)
    except ValueError:
        raise ValidationError(f"Unknown ledger account: {value!r}", details={"field": name})


@expenses_bp.post("")
def create_expense_route():
    try:
        data = request.get_json(silent=True) or {}
        debit, credit = expense_service.record_expense(
            company_id=int_field(data, "company_id", required=True),
            description=str_field(data, "description", required=True, max_len=255),
            amount_cents=int_field(data, "amount_cents", required=True),
            debit_account=_account(data, "debit_account", LedgerAccount.OPERATING_EXPENSE),
            credit_account=_account(data, "credit_account", LedgerAccount.CASH_BANK),
            linked_entity_id=int_field(data, "linked_entity_id"),
            created_by=int_field(data, "created_by"),
            entry_date=datetime_field(data, "entry_date"),
        )
        return jsonify({"expense": expense_service.expense_to_dict(debit, credit)}), 201

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("")
def list_expenses_route():
    try:
        args = request.args
        expenses = expense_service.list_expenses(
            int_field(args, "company_id", required=True),
            datetime_field(args, "start"),
            datetime_field(args, "end"),
        )
        return jsonify({"expenses": expenses, "count": len(expenses)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return jsonify({"error": "Internal server error"}), 500
