"""
Sesión de almacenamiento para mascotas.

Una sesión vive lo que dura una petición: carga mascotas (con joins opcionales
a dueño y vacunas), acumula altas y bajas y las aplica en `commit()`.
Las mascotas cargadas con `get_pet` quedan registradas y, si cambian, se
actualizan al hacer commit usando `version` como control de concurrencia.
"""
from typing import Any, Dict, List, Optional, Protocol, Tuple
import logging

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..db import get_db, next_sequence
from ..exceptions import ConcurrencyConflict, ForeignKeyViolation
from ..schemas.owner import Owner
from ..schemas.pet import Pet, EDITABLE_FIELDS
from ..schemas.vaccine import Vaccine

logger = logging.getLogger(__name__)


class PetSession(Protocol):
    """Contrato que usa el controlador; la implementación real es MongoPetSession."""

    async def list_pets(self, include_owner: bool = True) -> List[Pet]: ...

    async def get_pet(
        self,
        pet_id: int,
        *,
        include_owner: bool = False,
        include_vaccines: bool = False,
    ) -> Optional[Pet]: ...

    async def find_vaccine(self, vaccine_id: int) -> Optional[Vaccine]: ...

    async def list_owners(self) -> List[Owner]: ...

    async def list_vaccines(self) -> List[Vaccine]: ...

    async def pet_exists(self, pet_id: int) -> bool: ...

    def add(self, pet: Pet) -> None: ...

    def remove(self, pet: Pet) -> None: ...

    async def commit(self) -> None: ...

    def close(self) -> None: ...


# ---------- conversión documento <-> modelo ----------

def owner_from_doc(doc: Dict[str, Any]) -> Owner:
    return Owner(owner_id=doc["_id"], name=doc.get("name", ""))

def vaccine_from_doc(doc: Dict[str, Any]) -> Vaccine:
    return Vaccine(vaccine_id=doc["_id"], name=doc.get("name", ""))

def pet_from_doc(doc: Dict[str, Any]) -> Pet:
    owner = doc.get("owner")
    vaccines = doc.get("vaccines")
    return Pet(
        pet_id=doc["_id"],
        name=doc.get("name", ""),
        type=doc.get("type") or "",
        age=doc.get("age") or 0,
        owner_id=doc["owner_id"],
        owner=owner_from_doc(owner) if owner else None,
        vaccines=[vaccine_from_doc(v) for v in vaccines] if vaccines is not None else None,
        version=doc.get("version", 0),
    )

def pet_to_doc(pet: Pet) -> Dict[str, Any]:
    doc: Dict[str, Any] = {f: getattr(pet, f) for f in EDITABLE_FIELDS}
    if pet.vaccines is not None:
        doc["vaccine_ids"] = [v.vaccine_id for v in pet.vaccines]
    return doc

def _owner_lookup() -> List[Dict[str, Any]]:
    return [
        {"$lookup": {"from": "owners", "localField": "owner_id", "foreignField": "_id", "as": "owner"}},
        {"$unwind": {"path": "$owner", "preserveNullAndEmptyArrays": True}},
    ]

def _vaccines_lookup() -> List[Dict[str, Any]]:
    return [
        {"$lookup": {"from": "vaccines", "localField": "vaccine_ids", "foreignField": "_id", "as": "vaccines"}},
    ]


class MongoPetSession:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db
        # pet_id -> (mascota, snapshot al cargar)
        self._tracked: Dict[int, Tuple[Pet, Dict[str, Any]]] = {}
        self._added: List[Pet] = []
        self._removed: List[Pet] = []

    async def list_pets(self, include_owner: bool = True) -> List[Pet]:
        pipeline: List[Dict[str, Any]] = [{"$sort": {"_id": 1}}]
        if include_owner:
            pipeline += _owner_lookup()
        docs = await self._db.pets.aggregate(pipeline).to_list(None)
        return [pet_from_doc(d) for d in docs]

    async def get_pet(
        self,
        pet_id: int,
        *,
        include_owner: bool = False,
        include_vaccines: bool = False,
    ) -> Optional[Pet]:
        pipeline: List[Dict[str, Any]] = [{"$match": {"_id": pet_id}}, {"$limit": 1}]
        if include_owner:
            pipeline += _owner_lookup()
        if include_vaccines:
            pipeline += _vaccines_lookup()
        docs = await self._db.pets.aggregate(pipeline).to_list(1)
        if not docs:
            return None
        pet = pet_from_doc(docs[0])
        if not include_vaccines:
            pet.vaccines = None
        self._tracked[pet_id] = (pet, pet.model_dump())
        return pet

    async def find_vaccine(self, vaccine_id: int) -> Optional[Vaccine]:
        doc = await self._db.vaccines.find_one({"_id": vaccine_id})
        return vaccine_from_doc(doc) if doc else None

    async def list_owners(self) -> List[Owner]:
        docs = await self._db.owners.find().sort("_id", 1).to_list(None)
        return [owner_from_doc(d) for d in docs]

    async def list_vaccines(self) -> List[Vaccine]:
        docs = await self._db.vaccines.find().sort("_id", 1).to_list(None)
        return [vaccine_from_doc(d) for d in docs]

    async def pet_exists(self, pet_id: int) -> bool:
        return await self._db.pets.count_documents({"_id": pet_id}, limit=1) > 0

    def add(self, pet: Pet) -> None:
        self._added.append(pet)

    def remove(self, pet: Pet) -> None:
        self._removed.append(pet)

    async def _check_owner(self, owner_id: int) -> None:
        if await self._db.owners.count_documents({"_id": owner_id}, limit=1) == 0:
            raise ForeignKeyViolation("owner_id", owner_id)

    async def commit(self) -> None:
        removed_ids = set()
        for pet in self._removed:
            await self._db.pets.delete_one({"_id": pet.pet_id})
            removed_ids.add(pet.pet_id)
            self._tracked.pop(pet.pet_id, None)
        self._removed.clear()

        while self._added:
            pet = self._added[0]
            await self._check_owner(pet.owner_id)
            pet.pet_id = await next_sequence(self._db, "pets")
            pet.version = 0
            doc = pet_to_doc(pet)
            doc.setdefault("vaccine_ids", [])
            await self._db.pets.insert_one({"_id": pet.pet_id, **doc, "version": 0})
            logger.info(f"Mascota {pet.pet_id} creada")
            self._added.pop(0)

        for pet_id, (pet, snapshot) in list(self._tracked.items()):
            if pet_id in removed_ids or pet.model_dump() == snapshot:
                continue
            if pet.owner_id != snapshot["owner_id"]:
                await self._check_owner(pet.owner_id)
            res = await self._db.pets.update_one(
                {"_id": pet_id, "version": pet.version},
                {"$set": pet_to_doc(pet), "$inc": {"version": 1}},
            )
            if res.matched_count == 0:
                raise ConcurrencyConflict(pet_id)
            pet.version += 1
            self._tracked[pet_id] = (pet, pet.model_dump())

    def close(self) -> None:
        self._tracked.clear()
        self._added.clear()
        self._removed.clear()


async def get_pet_session(db: AsyncIOMotorDatabase = Depends(get_db)):
    session = MongoPetSession(db)
    try:
        yield session
    finally:
        session.close()
