from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from .config import get_settings

_settings = get_settings()
_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(_settings.mongodb_uri)
        _db = _client[_settings.db_name]
        # Índices necesarios
        await _db.users.create_index("email", unique=True)
        await _db.pets.create_index([("owner_id", 1)])
        await _db.pets.create_index([("vaccine_ids", 1)])
    return _db

async def next_sequence(db: AsyncIOMotorDatabase, name: str) -> int:
    """
    Devuelve el siguiente id entero de la colección `name`.
    Los contadores viven en la colección `counters` ({_id: name, value: n}).
    """
    doc = await db.counters.find_one_and_update(
        {"_id": name},
        {"$inc": {"value": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(doc["value"])
