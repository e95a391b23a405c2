#!/usr/bin/env python3
"""
Create tables and the default Stars package catalog, then print it.
Run from the project root: python -m scripts.seed_catalog
or: PYTHONPATH=. python scripts/seed_catalog.py
"""
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import tanishuv.models  # noqa: F401  (registers tables on Base.metadata)
from tanishuv.db.base import Base
from tanishuv.db.session import SessionLocal, engine
from tanishuv.services.payments.service import PaymentService
from tanishuv.utils.currency import format_stars_uzs


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        service = PaymentService(db)
        created = service.seed_default_packages()
        print(f"Yangi paketlar: {created}\n")
        for p in service.list_active_packages():
            bonus = f" +{p.bonus_percent}%" if p.bonus_percent else ""
            print(f"  {p.name}: {p.total_stars} Stars{bonus} -> {format_stars_uzs(p.price_stars)}  [{p.id}]")
    finally:
        db.close()


if __name__ == "__main__":
    main()
