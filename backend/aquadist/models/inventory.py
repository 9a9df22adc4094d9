from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


MOVEMENT_IMPORT = "import"
MOVEMENT_EXPORT = "export"
MOVEMENT_RETURN = "return"
MOVEMENT_TYPES = {MOVEMENT_IMPORT, MOVEMENT_EXPORT, MOVEMENT_RETURN}

# Sign of each movement's effect on Product.stock
MOVEMENT_SIGN = {
    MOVEMENT_IMPORT: 1,
    MOVEMENT_EXPORT: -1,
    MOVEMENT_RETURN: -1,
}


class InventoryLog(db.Model):
    """
    Append-only stock movement log.

    Rows are never updated or deleted. Reversals (e.g. deleting an import)
    append compensating rows. quantity is always positive; the direction comes
    from movement_type.

    reference is a free-text pointer to the triggering document
    ("order:12", "import:7"). It is not a foreign key because imports can be
    hard-deleted while their log rows stay.
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.Index("ix_invlog_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_invlog_product_type_occurred", "product_id", "movement_type", "occurred_at"),
        db.CheckConstraint("quantity > 0", name="ck_invlog_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    # Stock level right after this movement was applied
    stock_after = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)
    reference = db.Column(db.String(64), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "stock_after": self.stock_after,
            "note": self.note,
            "reference": self.reference,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_by_user_id": self.created_by_user_id,
        }
