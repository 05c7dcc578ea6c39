# vetclinic/routers/dev.py
# Endpoint de desarrollo para crear datos de prueba
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from ..config import get_settings
from ..db import get_db, next_sequence
from ..security import hash_password

router = APIRouter()
settings = get_settings()

OWNERS = ["Laura Martín", "Carlos Ruiz", "Elena Gómez"]
VACCINES = ["Rabies", "Distemper", "Parvovirus", "Leptospirosis", "Feline Leukemia"]

async def _ensure_named(db: AsyncIOMotorDatabase, collection: str, name: str) -> int:
    existing = await db[collection].find_one({"name": name})
    if existing:
        return existing["_id"]
    new_id = await next_sequence(db, collection)
    await db[collection].insert_one({"_id": new_id, "name": name})
    return new_id

@router.post("/seed-data")
async def seed_data(db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Crea dueños, vacunas y usuarios de prueba.
    Solo para desarrollo; se puede llamar varias veces.
    """
    owner_ids = [await _ensure_named(db, "owners", name) for name in OWNERS]
    vaccine_ids = [await _ensure_named(db, "vaccines", name) for name in VACCINES]

    users_data = [
        {
            "name": "Admin",
            "email": "admin@vetclinic.com",
            "password_hash": hash_password("abc12345"),
            "roles": [settings.admin_role],
        },
        {
            "name": "Staff",
            "email": "staff@vetclinic.com",
            "password_hash": hash_password("abc12345"),
            "roles": [],
        },
    ]

    created_users = []
    for user_data in users_data:
        # Verificar si ya existe
        existing = await db.users.find_one({"email": user_data["email"]})
        if existing:
            created_users.append(str(existing["_id"]))
            continue
        res = await db.users.insert_one(user_data)
        created_users.append(str(res.inserted_id))

    return {
        "message": "Datos de prueba creados",
        "owner_ids": owner_ids,
        "vaccine_ids": vaccine_ids,
        "user_ids": created_users,
    }
