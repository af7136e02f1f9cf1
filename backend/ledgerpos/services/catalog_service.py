# Overview: Company and product master data consumed by the sale/return engine.
"""
Product catalog.

MULTI-TENANT: every lookup is scoped by company_id; a product id from
another company is reported as not found.

Once a product is referenced by stock or sales history its price basis
(unit_purchase_price_cents) and is_serialized flag are frozen; only the
descriptive fields in PRODUCT_MUTABLE_FIELDS stay editable.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ProductNotFoundError, ValidationError, ReferentialIntegrityError
from ..extensions import db
from ..models import Company, InventoryRecord, Product, SaleLine

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "is_active"}
PRODUCT_FROZEN_FIELDS = {"unit_purchase_price_cents", "is_serialized"}


def create_company(*, name: str, code: str | None = None) -> Company:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Company name is required")
    company = Company(name=name, code=(code or None))
    db.session.add(company)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ValidationError("Company code already in use", details={"code": code}) from exc
    return company


def get_company(company_id: int) -> Company | None:
    return db.session.get(Company, company_id)


def get_product(company_id: int, product_id: int) -> Product:
    """Catalog lookup used by the orchestrator. Raises ProductNotFoundError."""
    product = (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.company_id == company_id)
        .first()
    )
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def list_products(company_id: int, *, include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product).filter(Product.company_id == company_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(
    *,
    company_id: int,
    sku: str,
    name: str,
    unit_purchase_price_cents: int = 0,
    is_serialized: bool = False,
    description: str | None = None,
) -> Product:
    sku = (sku or "").strip()
    name = (name or "").strip()
    if not sku or not name:
        raise ValidationError("sku and name are required")
    if unit_purchase_price_cents < 0:
        raise ValidationError("unit_purchase_price_cents must be >= 0")
    if get_company(company_id) is None:
        raise ValidationError(f"Company {company_id} not found", details={"company_id": company_id})

    product = Product(
        company_id=company_id,
        sku=sku,
        name=name,
        description=description,
        unit_purchase_price_cents=unit_purchase_price_cents,
        is_serialized=bool(is_serialized),
    )
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ValidationError("SKU already exists for this company", details={"sku": sku}) from exc
    return product


def is_product_referenced(product_id: int) -> bool:
    has_stock = db.session.query(InventoryRecord.id).filter(InventoryRecord.product_id == product_id).first()
    if has_stock:
        return True
    sold = db.session.query(SaleLine.id).filter(SaleLine.product_id == product_id).first()
    return sold is not None


def update_product(company_id: int, product_id: int, patch: dict) -> Product:
    product = get_product(company_id, product_id)

    frozen = PRODUCT_FROZEN_FIELDS.intersection(patch)
    if frozen and is_product_referenced(product_id):
        raise ReferentialIntegrityError(
            "Product has stock or sales history; price basis and serialization are frozen",
            details={"product_id": product_id, "fields": sorted(frozen)},
        )

    for key, value in patch.items():
        if key in PRODUCT_MUTABLE_FIELDS or key in PRODUCT_FROZEN_FIELDS:
            setattr(product, key, value)

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ValidationError("SKU already exists for this company", details={"sku": patch.get("sku")}) from exc
    return product
