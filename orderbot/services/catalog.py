from __future__ import annotations

import re
import unicodedata
from typing import Any

from sqlalchemy.orm import Session

from orderbot.models.product import Product


def normalize_text(text: str) -> str:
    text = (text or "").lower()
    text = unicodedata.normalize("NFKD", text)
    text = "".join(char for char in text if not unicodedata.combining(char))
    text = re.sub(r"[-_]", " ", text)
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def load_catalog(db: Session, limit: int = 50) -> list[dict[str, Any]]:
    products = (
        db.query(Product)
        .filter(Product.active.is_(True))
        .order_by(Product.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "name": product.name,
            "price": float(product.price or 0),
            "stock": int(product.stock or 0),
        }
        for product in products
    ]


def find_catalog_entry(catalog: list[dict[str, Any]], name: str | None) -> dict[str, Any] | None:
    wanted = normalize_text(name or "")
    if not wanted:
        return None
    for entry in catalog:
        if normalize_text(str(entry.get("name") or "")) == wanted:
            return entry
    return None


def format_catalog(catalog: list[dict[str, Any]]) -> str:
    if not catalog:
        return "📦 Одоогоор бүтээгдэхүүний мэдээлэл алга байна. Дараа дахин оролдоно уу!"
    lines = ["📦 Манай бүтээгдэхүүнүүд:"]
    for idx, entry in enumerate(catalog, start=1):
        price = int(round(float(entry.get("price") or 0)))
        suffix = "" if int(entry.get("stock") or 0) > 0 else " (дууссан)"
        lines.append(f"{idx}. {entry['name']} - {price:,}₮{suffix}")
    lines.append("\nЗахиалахыг хүсвэл бараа, тоо ширхэг, утас, хаягаа бичнэ үү.")
    return "\n".join(lines)


def upsert_product(
    db: Session,
    *,
    name: str,
    price: float,
    stock: int = 0,
    active: bool = True,
) -> tuple[Product, bool]:
    name = (name or "").strip()
    if not name:
        raise ValueError("product name is required")
    if price < 0:
        raise ValueError("product price must not be negative")

    product = db.query(Product).filter(Product.name == name).first()
    created = product is None
    if created:
        product = Product(name=name)
        db.add(product)
    product.price = float(price)
    product.stock = max(0, int(stock))
    product.active = active
    db.commit()
    db.refresh(product)
    return product, created
