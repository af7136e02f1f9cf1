from __future__ import annotations

import enum

from ..extensions import db
from ledgerpos.time_utils import to_utc_z, utcnow


class UnitStatus(str, enum.Enum):
    IN_STOCK = "In Stock"
    SOLD = "Sold"
    RETURNED = "Returned"
    FAULTY = "Faulty"


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to companies via company_id.
    SKUs are unique within a company.

    unit_purchase_price_cents and is_serialized are frozen once the product
    has stock or sales history (see catalog_service.update_product); only
    descriptive fields stay editable.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        db.Index("ix_products_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    unit_purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    is_serialized = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unit_purchase_price_cents": self.unit_purchase_price_cents,
            "is_serialized": self.is_serialized,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryRecord(db.Model):
    """
    Stock for one (company, product, vendor).

    INVARIANT: total_quantity == SUM(batches.quantity). Both are only ever
    mutated together, by the atomic statements in inventory_service.
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("company_id", "product_id", "vendor_id", name="uq_inventory_company_product_vendor"),
        db.CheckConstraint("total_quantity >= 0", name="total_quantity_non_negative"),
        db.Index("ix_inventory_company_product", "company_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("entities.id"), nullable=True, index=True)

    total_quantity = db.Column(db.Integer, nullable=False, default=0)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("inventory_records", lazy=True))
    batches = db.relationship(
        "InventoryBatch",
        backref="record",
        lazy=True,
        order_by=lambda: [InventoryBatch.added_at, InventoryBatch.id],
    )

    def to_dict(self, include_batches: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "vendor_id": self.vendor_id,
            "total_quantity": self.total_quantity,
            "is_deleted": self.is_deleted,
            "created_at": to_utc_z(self.created_at),
        }
        if include_batches:
            data["batches"] = [b.to_dict() for b in self.batches]
        return data


class InventoryBatch(db.Model):
    """
    A dated lot of a product.

    Batches are appended, never removed, so a zero-quantity batch keeps its
    audit trail. company_id/product_id are copied from the record so the
    conditional decrement can scope its WHERE clause without a join.
    """
    __tablename__ = "inventory_batches"
    __table_args__ = (
        db.UniqueConstraint("record_id", "batch_code", name="uq_batches_record_code"),
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        db.Index("ix_batches_company_product", "company_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey("inventory_records.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Barcode / lot code
    batch_code = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    purchase_price_cents = db.Column(db.Integer, nullable=False)
    selling_price_cents = db.Column(db.Integer, nullable=False)

    added_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "record_id": self.record_id,
            "product_id": self.product_id,
            "batch_code": self.batch_code,
            "quantity": self.quantity,
            "purchase_price_cents": self.purchase_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "added_at": to_utc_z(self.added_at),
            "expires_at": to_utc_z(self.expires_at) if self.expires_at else None,
        }


class InventoryUnit(db.Model):
    """
    One physical unit of a serialized product.

    Status transitions: In Stock -> Sold on sale, Sold -> In Stock on return.
    Serial numbers are globally unique when present.
    """
    __tablename__ = "inventory_units"
    __table_args__ = (
        db.UniqueConstraint("serial_number", name="uq_inventory_units_serial"),
        db.Index("ix_units_batch_status", "batch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=False)

    serial_number = db.Column(db.String(128), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=UnitStatus.IN_STOCK.value)

    sale_id = db.Column(db.Integer, db.ForeignKey("sale_transactions.id"), nullable=True, index=True)

    added_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=True)
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    batch = db.relationship("InventoryBatch", backref=db.backref("units", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "serial_number": self.serial_number,
            "status": self.status,
            "sale_id": self.sale_id,
            "added_at": to_utc_z(self.added_at),
            "sold_at": to_utc_z(self.sold_at) if self.sold_at else None,
            "returned_at": to_utc_z(self.returned_at) if self.returned_at else None,
        }
