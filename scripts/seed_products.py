#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

import orderbot.models  # noqa: E402,F401
from orderbot.core.database import Base, SessionLocal, engine  # noqa: E402
from orderbot.services.catalog import upsert_product  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or update catalog products.")
    parser.add_argument("--file", type=Path, help='JSON list: [{"name": "...", "price": 0, "stock": 0}]')
    parser.add_argument("--name", help="Product name")
    parser.add_argument("--price", type=float, help="Unit price in MNT")
    parser.add_argument("--stock", type=int, default=0, help="Units in stock")
    parser.add_argument("--inactive", action="store_true", help="Hide the product from the catalog")
    parser.add_argument("--create-tables", action="store_true", help="Run create_all first (SQLite dev only)")
    return parser.parse_args()


def _load_rows(args: argparse.Namespace) -> list[dict]:
    if args.file:
        rows = json.loads(args.file.read_text(encoding="utf-8"))
        if not isinstance(rows, list):
            raise ValueError("product file must contain a JSON list")
        return rows
    if args.name and args.price is not None:
        return [{"name": args.name, "price": args.price, "stock": args.stock, "active": not args.inactive}]
    raise ValueError("use --file or --name with --price")


def main() -> int:
    args = parse_args()
    try:
        rows = _load_rows(args)
    except (OSError, ValueError) as exc:
        print(str(exc))
        return 1

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        for row in rows:
            try:
                product, created = upsert_product(
                    db,
                    name=str(row.get("name") or ""),
                    price=float(row.get("price") or 0),
                    stock=int(row.get("stock") or 0),
                    active=bool(row.get("active", True)),
                )
            except ValueError as exc:
                print(f"skipped {row!r}: {exc}")
                continue
            print(f"{'created' if created else 'updated'} id={product.id} name={product.name} price={product.price}")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
