# backend/aquadist/services/products_service.py
"""
Products Service

Products are created with zero stock. Stock only ever changes through the
inventory movement engine, so there is no stock field in the create payload.
"""
from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..validation import non_negative_int, optional_text, require_text


def create_product(*, name, unit, price_cents=None, is_returnable=False, description=None) -> Product:
    name = require_text(name, "name")
    unit = require_text(unit, "unit", max_length=32)
    if price_cents is not None:
        price_cents = non_negative_int(price_cents, "price_cents")
    if not isinstance(is_returnable, bool):
        raise ValidationError("is_returnable must be a boolean")

    if db.session.query(Product).filter_by(name=name).first() is not None:
        raise ValidationError(f"Product name already exists: {name}", details={"name": name})

    product = Product(
        name=name,
        unit=unit,
        price_cents=price_cents,
        is_returnable=is_returnable,
        description=optional_text(description, "description", max_length=2000),
        stock=0,
    )
    db.session.add(product)
    db.session.commit()
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_products(*, returnable: bool | None = None) -> list[Product]:
    q = db.session.query(Product)
    if returnable is not None:
        q = q.filter(Product.is_returnable.is_(returnable))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()
