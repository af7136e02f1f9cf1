# Overview: Receipt renderer; Jinja text receipts written after commit, best-effort.

from __future__ import annotations

import os
import re

from flask import current_app, render_template

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def format_cents(value) -> str:
    """Template filter: 1234 -> "12.34"."""
    value = int(value or 0)
    sign = "-" if value < 0 else ""
    value = abs(value)
    return f"{sign}{value // 100}.{value % 100:02d}"


def receipt_dir() -> str:
    path = current_app.config.get("RECEIPT_DIR") or os.path.join(current_app.instance_path, "receipts")
    os.makedirs(path, exist_ok=True)
    return path


def render(template: str, data: dict) -> str:
    """
    Render templates/receipts/<template>.txt with data and write it to disk.

    Returns the written file path. Raises on any template or I/O failure;
    request_receipt is the wrapper that swallows those.
    """
    body = render_template(f"receipts/{template}.txt", **data)
    name = _SAFE_NAME.sub("_", str(data.get("document_number") or template))
    path = os.path.join(receipt_dir(), f"{name}.txt")
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(body)
    return path


def request_receipt(template: str, data, document_number: str | None = None) -> str | None:
    """
    Post-commit receipt request. Failures are logged, never raised.

    data may be a dict or a zero-argument callable building it, so that
    gathering the receipt data is covered by the same guard.
    """
    if not current_app.config.get("RECEIPTS_ENABLED", True):
        return None
    try:
        if callable(data):
            data = data()
        return render(template, data)
    except Exception:
        current_app.logger.exception(
            "Receipt rendering failed for %s (%s); transaction already committed",
            document_number, template,
        )
        return None
