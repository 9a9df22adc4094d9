from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with its live stock balance.

    STOCK: Product.stock is the running on-hand balance. It only changes through
    the inventory movement engine, which appends an InventoryLog row in the same
    DB transaction. It must never be negative after a decrement.

    CONCURRENCY: version_id is an optimistic lock. Two writers that both read the
    same version cannot both commit a stock change.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_products_name"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in minor units; NULL means "no price, cannot be sold"
    price_cents = db.Column(db.Integer, nullable=True)

    # Returnable products (bottles, jugs) create empty-container debt when sold
    is_returnable = db.Column(db.Boolean, nullable=False, default=False)

    stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "description": self.description,
            "price_cents": self.price_cents,
            "is_returnable": self.is_returnable,
            "stock": self.stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
