from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Warehouse(db.Model):
    """Stock-holding location operated by the owner and managers."""
    __tablename__ = "warehouses"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_warehouses_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "location": self.location,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Distributor(db.Model):
    """
    Reseller business. Buys from a warehouse, holds its own stock, and
    sells to its clients.
    """
    __tablename__ = "distributors"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_distributors_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    business_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "business_name": self.business_name,
            "phone": self.phone,
            "location": self.location,
            "is_active": self.is_active,
            "email": self.user.email if self.user else None,
            "contact_name": self.user.full_name if self.user else None,
            "created_at": to_utc_z(self.created_at),
        }


class Client(db.Model):
    """Retail customer attached to exactly one distributor."""
    __tablename__ = "clients"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_clients_user"),
        db.Index("ix_clients_distributor_active", "distributor_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.id"), nullable=False)
    business_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")
    distributor = db.relationship("Distributor")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "distributor_id": self.distributor_id,
            "business_name": self.business_name,
            "phone": self.phone,
            "is_active": self.is_active,
            "email": self.user.email if self.user else None,
            "created_at": to_utc_z(self.created_at),
        }
