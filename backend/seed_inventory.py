"""Seed the pharmacy catalog with a demo set of medicines.

Usage: python seed_inventory.py
Skips any medicine whose name already exists.
"""
from datetime import date, timedelta

from pharmacy_pos.core.logging_config import configure_logging
from pharmacy_pos.db.init_db import init_db
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.db.session import SessionLocal
from pharmacy_pos.models.medicine import Medicine
from pharmacy_pos.services.inventory_service import create_medicine

_today = date.today()

MEDICINES = [
    {"name": "Paracetamol 500mg", "category": "Analgesic", "price": "2.50", "stock": 200, "threshold": 40,
     "supplier": "Cipla", "expiry_date": _today + timedelta(days=540), "description": "Fever, headache, body pain"},
    {"name": "Dolo 650", "category": "Analgesic", "price": "3.00", "stock": 180, "threshold": 40,
     "supplier": "Micro Labs", "expiry_date": _today + timedelta(days=400), "description": "High fever"},
    {"name": "Azithromycin 500mg", "category": "Antibiotic", "price": "15.00", "stock": 8, "threshold": 20,
     "supplier": "Alembic", "expiry_date": _today + timedelta(days=20), "description": "Bacterial infections"},
    {"name": "Amoxicillin 500mg", "category": "Antibiotic", "price": "8.00", "stock": 100, "threshold": 25,
     "supplier": "Cipla", "expiry_date": _today + timedelta(days=300), "description": "Throat and ear infections"},
    {"name": "Cetirizine 10mg", "category": "Antihistamine", "price": "1.50", "stock": 250, "threshold": 50,
     "supplier": "Dr. Reddy's", "expiry_date": _today + timedelta(days=700), "description": "Allergies, itching"},
    {"name": "Pantoprazole 40mg", "category": "Antacid", "price": "6.00", "stock": 0, "threshold": 30,
     "supplier": "Alkem", "expiry_date": _today + timedelta(days=365), "description": "Acidity, GERD"},
    {"name": "ORS Sachet", "category": "Rehydration", "price": "20.00", "stock": 60, "threshold": 15,
     "supplier": "FDC", "expiry_date": _today - timedelta(days=5), "description": "Dehydration"},
    {"name": "Metformin 500mg", "category": "Antidiabetic", "price": "3.50", "stock": 12, "threshold": 40,
     "supplier": "USV", "expiry_date": _today + timedelta(days=450), "description": "Type 2 diabetes"},
]


def seed_inventory() -> int:
    init_db()
    db = SessionLocal()
    added = 0
    try:
        repo = PharmacyRepository(db)
        existing = {m.name for m in repo.list_medicines()}
        for data in MEDICINES:
            if data["name"] in existing:
                continue
            medicine: Medicine = create_medicine(repo, **data)
            print(f"  + {medicine.name:<22} stock {medicine.stock:>4}  ({medicine.id})")
            added += 1
    finally:
        db.close()
    return added


if __name__ == "__main__":
    configure_logging()
    count = seed_inventory()
    print(f"Seeded {count} medicine(s)")
