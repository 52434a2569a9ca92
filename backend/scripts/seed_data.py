"""
Seed database with a sample closet.
Run this script to populate the database for testing/development.

Usage:
    python -m scripts.seed_data
"""

import sys
import os

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.database import SessionLocal
from app.core.startup import initialize_database
from app.cv.taxonomy import ClothingMaterial, ClothingType
from app.models.clothing import ClothingItem, ClothingSize, Condition, Occasion, Season

SAMPLE_ITEMS = [
    {
        "name": "Blue Denim Jeans",
        "type": ClothingType.JEANS,
        "material": ClothingMaterial.DENIM,
        "color": "Blue",
        "brand": "Levi's",
        "size": ClothingSize.M,
        "purchase_price": 89.99,
        "store": "Macy's",
        "season": Season.ALL_SEASON,
        "occasion": Occasion.CASUAL,
        "condition": Condition.GOOD,
        "tags": ["casual", "everyday"],
    },
    {
        "name": "White Cotton T-Shirt",
        "type": ClothingType.T_SHIRT,
        "material": ClothingMaterial.COTTON,
        "color": "White",
        "brand": "Gap",
        "size": ClothingSize.M,
        "purchase_price": 19.99,
        "store": "Gap",
        "season": Season.SUMMER,
        "occasion": Occasion.CASUAL,
        "condition": Condition.EXCELLENT,
        "tags": ["basic", "summer"],
    },
    {
        "name": "Black Wool Sweater",
        "type": ClothingType.SWEATER,
        "material": ClothingMaterial.WOOL,
        "color": "Black",
        "brand": "J.Crew",
        "size": ClothingSize.L,
        "purchase_price": 120.00,
        "store": "J.Crew",
        "season": Season.WINTER,
        "occasion": Occasion.WORK,
        "condition": Condition.GOOD,
        "tags": ["warm", "professional"],
    },
    {
        "name": "Red Silk Blouse",
        "type": ClothingType.BLOUSE,
        "material": ClothingMaterial.SILK,
        "color": "Red",
        "brand": "Banana Republic",
        "size": ClothingSize.S,
        "purchase_price": 85.00,
        "store": "Banana Republic",
        "season": Season.SPRING,
        "occasion": Occasion.WORK,
        "condition": Condition.EXCELLENT,
        "tags": ["elegant", "office"],
    },
    {
        "name": "Gray Polyester Jacket",
        "type": ClothingType.JACKET,
        "material": ClothingMaterial.POLYESTER,
        "color": "Gray",
        "brand": "Nike",
        "size": ClothingSize.M,
        "purchase_price": 95.50,
        "store": "Nike Store",
        "season": Season.FALL,
        "occasion": Occasion.SPORT,
        "condition": Condition.GOOD,
        "tags": ["athletic", "outdoor"],
    },
]


def seed_database():
    """Seed database with sample closet items."""
    initialize_database()
    db = SessionLocal()

    try:
        print("🌱 Starting database seeding...")

        existing = db.query(ClothingItem).count()
        if existing:
            print(f"⚠️  Closet already has {existing} items. Skipping seeding.")
            return

        print("\n👕 Creating sample items...")
        for fields in SAMPLE_ITEMS:
            item = ClothingItem(**fields)
            db.add(item)
            db.commit()
            db.refresh(item)
            print(f"✅ {item.name} ({item.type.value}, {item.material.value}) - ID: {item.id}")

        print("\n" + "="*60)
        print(f"✅ Database seeding completed: {len(SAMPLE_ITEMS)} items")
        print("="*60)

    except Exception as e:
        print(f"\n❌ Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
