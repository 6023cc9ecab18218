import asyncio

from dotenv import load_dotenv

load_dotenv()

from farmlink.core.db import get_client, get_db  # noqa: E402
from farmlink.core.security import hash_password  # noqa: E402
from farmlink.repos.base import utcnow  # noqa: E402

# Dhaka area: farm in Savar, buyer in Gulshan, transporter near Mirpur
USERS = [
    {"_id": "F1", "name": "Rahim Farms", "email": "farmer@farmlink.io", "role": "farmer",
     "phone": "01700000001", "farm_location": {"lat": 23.8583, "lng": 90.2667}},
    {"_id": "B1", "name": "Karim Grocers", "email": "buyer@farmlink.io", "role": "buyer",
     "phone": "01700000002"},
    {"_id": "T1", "name": "Fast Haul", "email": "transporter@farmlink.io", "role": "transporter",
     "phone": "01700000003", "base_location": {"lat": 23.8223, "lng": 90.3654},
     "service_districts": ["Dhaka"]},
]


async def main():
    db = get_db()
    ids = [u["_id"] for u in USERS]
    await db.users.delete_many({"_id": {"$in": ids}})
    await db.products.delete_many({"_id": {"$in": ["P1"]}})

    now = utcnow()
    await db.users.insert_many([
        {**u, "password_hash": hash_password("demo1234"), "created_at": now} for u in USERS
    ])
    await db.products.insert_one({
        "_id": "P1",
        "farmer": "F1",
        "crop_name": "Tomato",
        "category": "vegetables",
        "price_per_unit": 40.0,
        "unit": "kg",
        "quantity": 500,
        "grade": "A",
        "photos": [],
        "location": {"address": "Savar, Dhaka", "district": "Dhaka",
                     "location": {"lat": 23.8583, "lng": 90.2667}},
        "status": "available",
        "average_rating": 0,
        "review_count": 0,
        "created_at": now,
    })
    print("Seeded: F1, B1, T1, P1 (password demo1234)")
    get_client().close()

if __name__ == "__main__":
    asyncio.run(main())
