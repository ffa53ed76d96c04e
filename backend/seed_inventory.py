"""Seed the shared products collection with a demo pharmacy catalog.

Usage: python seed_inventory.py [pharmacy_id]
Existing products with the same id are replaced; other products are kept.
"""
import sys

from eudora.core.config import settings
from eudora.db.init_db import init_db

MEDICINES = [
    {"id": "med_paracetamol_500", "name": "Paracetamol 500mg", "category": "analgesic", "price": "2.50", "stock": 200},
    {"id": "med_ibuprofen_400", "name": "Ibuprofen 400mg", "category": "analgesic", "price": "4.20", "stock": 150},
    {"id": "med_aspirin_100", "name": "Aspirin 100mg", "category": "analgesic", "price": "3.10", "stock": 120},
    {"id": "med_cetirizine_10", "name": "Cetirizine 10mg", "category": "antihistamine", "price": "5.00", "stock": 90},
    {"id": "med_omeprazole_20", "name": "Omeprazole 20mg", "category": "gastro", "price": "6.80", "stock": 60},
    {"id": "med_ors", "name": "Oral Rehydration Salts", "category": "gastro", "price": "1.90", "stock": 300},
    {"id": "med_vitamin_d3", "name": "Vitamin D3 1000 IU", "category": "supplement", "price": "9.50", "stock": 40},
    {"id": "med_cough_syrup", "name": "Dextromethorphan Syrup", "category": "respiratory", "price": "7.40", "stock": 4},
    {"id": "med_amoxicillin_500", "name": "Amoxicillin 500mg", "category": "antibiotic", "price": "8.00", "stock": 30,
     "requiresPrescription": True},
    {"id": "med_azithromycin_500", "name": "Azithromycin 500mg", "category": "antibiotic", "price": "12.00",
     "stock": 3, "requiresPrescription": True},
    {"id": "med_tramadol_50", "name": "Tramadol 50mg", "category": "analgesic", "price": "9.50", "stock": 0,
     "requiresPrescription": True},
]


def seed_inventory(pharmacy_id: str = "pharmacy_1"):
    store = init_db()

    seeded = {med["id"] for med in MEDICINES}
    products = [p for p in store.get(settings.PRODUCTS_KEY) or [] if p.get("id") not in seeded]
    for med in MEDICINES:
        products.append({
            "requiresPrescription": False,
            "isActive": True,
            **med,
            "pharmacyId": pharmacy_id,
        })
    store.set(settings.PRODUCTS_KEY, products)

    print(f"\n✅ Seeded {len(MEDICINES)} products for pharmacy '{pharmacy_id}'")
    print("=" * 70)
    for med in MEDICINES:
        rx = " [Rx]" if med.get("requiresPrescription") else ""
        print(f"  📌 {med['name']}{rx}")
        print(f"     💰 Price: €{med['price']} | 📦 Stock: {med['stock']} units")


if __name__ == "__main__":
    seed_inventory(sys.argv[1] if len(sys.argv) > 1 else "pharmacy_1")
