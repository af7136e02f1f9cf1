from __future__ import annotations

import enum

from ..extensions import db
from ledgerpos.time_utils import to_utc_z


class EntityType(str, enum.Enum):
    CUSTOMER = "Customer"
    VENDOR = "Vendor"
    BOTH = "Both"


class AccountStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"


class Entity(db.Model):
    """
    Customer / vendor master data.

    MULTI-TENANT: Entities are scoped to companies via company_id.
    Entities are never hard-deleted once they carry ledger history;
    see account_service.ensure_entity_deletable.
    """
    __tablename__ = "entities"
    __table_args__ = (
        db.Index("ix_entities_company_type", "company_id", "entity_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    entity_type = db.Column(db.String(16), nullable=False, default=EntityType.CUSTOMER.value)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    # Soft delete flag
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("entities", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "entity_type": self.entity_type,
            "email": self.email,
            "phone": self.phone,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class Account(db.Model):
    """
    Relationship record between an entity and a company.

    Ledger rows are attributed to an Account via account_id. One row per
    (entity_id, company_id); the unique constraint is what makes lazy
    provisioning safe under concurrent first-use (see find_or_create_account).
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("entity_id", "company_id", name="uq_accounts_entity_company"),
        db.Index("ix_accounts_company_type", "company_id", "entity_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_id = db.Column(db.Integer, db.ForeignKey("entities.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    # Customer / Vendor / Both
    entity_type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=AccountStatus.ACTIVE.value, index=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_by = db.Column(db.Integer, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    entity = db.relationship("Entity", backref=db.backref("accounts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Account id={self.id} entity_id={self.entity_id} company_id={self.company_id} type={self.entity_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "company_id": self.company_id,
            "entity_type": self.entity_type,
            "status": self.status,
            "is_deleted": self.is_deleted,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
