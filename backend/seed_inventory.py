"""Seed the pharmacy with a starter catalogue and a walk-in customer.

Safe to re-run: medicines are matched by name and only missing ones are added.
"""
from datetime import date, timedelta
from decimal import Decimal

from pharmacy.db.init_db import init_db
from pharmacy.db.session import SessionLocal
from pharmacy.models.customer import Customer
from pharmacy.models.medicine import Medicine

MEDICINES = [
    {"name": "Paracetamol 500mg", "category": "Analgesic", "price": "2.50", "quantity": 200,
     "description": "Fever, headache, body pain"},
    {"name": "Ibuprofen 400mg", "category": "Analgesic", "price": "3.20", "quantity": 150,
     "description": "Pain and inflammation"},
    {"name": "Amoxicillin 500mg", "category": "Antibiotic", "price": "8.75", "quantity": 80,
     "description": "Bacterial infections, prescription only"},
    {"name": "Cetirizine 10mg", "category": "Antihistamine", "price": "1.80", "quantity": 120,
     "description": "Allergies, hay fever"},
    {"name": "Omeprazole 20mg", "category": "Antacid", "price": "4.10", "quantity": 90,
     "description": "Acidity and reflux"},
    {"name": "ORS Sachet", "category": "Rehydration", "price": "0.90", "quantity": 300,
     "description": "Dehydration from diarrhoea or heat"},
    {"name": "Metformin 500mg", "category": "Antidiabetic", "price": "2.95", "quantity": 8,
     "description": "Type 2 diabetes"},
]


def seed_inventory():
    init_db()
    db = SessionLocal()
    try:
        existing = {name for (name,) in db.query(Medicine.name).all()}
        expiry = date.today() + timedelta(days=540)
        added = 0
        for item in MEDICINES:
            if item["name"] in existing:
                continue
            db.add(Medicine(
                name=item["name"],
                description=item["description"],
                category=item["category"],
                price=Decimal(item["price"]),
                quantity=item["quantity"],
                expiry_date=expiry,
            ))
            added += 1

        if not db.query(Customer).filter(Customer.name == "Walk-in Customer").first():
            db.add(Customer(name="Walk-in Customer"))

        db.commit()
        print(f"Added {added} medicines ({len(MEDICINES) - added} already present)")
    finally:
        db.close()


if __name__ == "__main__":
    seed_inventory()
