"""
Configuración de pytest para tests
"""
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from vetclinic.controllers.pets import PetController
from vetclinic.exceptions import ConcurrencyConflict, ForeignKeyViolation
from vetclinic.repositories.pets import get_pet_session
from vetclinic.schemas.owner import Owner
from vetclinic.schemas.pet import Pet
from vetclinic.schemas.vaccine import Vaccine
from vetclinic.security import Principal, get_current_principal


class FakePetSession:
    """Sesión en memoria con el mismo contrato que MongoPetSession."""

    def __init__(self, owners: List[Owner], vaccines: List[Vaccine], pets: List[Pet]):
        self.owners: Dict[int, Owner] = {o.owner_id: o for o in owners}
        self.vaccines: Dict[int, Vaccine] = {v.vaccine_id: v for v in vaccines}
        self.rows: Dict[int, Pet] = {p.pet_id: p.model_copy(deep=True) for p in pets}
        self._next_id = max(self.rows, default=0) + 1
        self._tracked: Dict[int, tuple] = {}
        self._added: List[Pet] = []
        self._removed: List[Pet] = []
        self.commits = 0
        # simulación de errores
        self.conflict_on_commit = False
        self.delete_on_conflict = False
        self.fail_on_commit: Optional[Exception] = None
        self.closed = False
        self.vaccine_lookups = 0

    async def list_pets(self, include_owner: bool = True) -> List[Pet]:
        pets = []
        for pet_id in sorted(self.rows):
            pet = self.rows[pet_id].model_copy(deep=True)
            pet.owner = self.owners.get(pet.owner_id) if include_owner else None
            pet.vaccines = None
            pets.append(pet)
        return pets

    async def get_pet(self, pet_id: int, *, include_owner: bool = False, include_vaccines: bool = False):
        row = self.rows.get(pet_id)
        if row is None:
            return None
        pet = row.model_copy(deep=True)
        pet.owner = self.owners.get(pet.owner_id) if include_owner else None
        if not include_vaccines:
            pet.vaccines = None
        self._tracked[pet_id] = (pet, pet.model_dump())
        return pet

    async def find_vaccine(self, vaccine_id: int):
        self.vaccine_lookups += 1
        return self.vaccines.get(vaccine_id)

    async def list_owners(self) -> List[Owner]:
        return [self.owners[k] for k in sorted(self.owners)]

    async def list_vaccines(self) -> List[Vaccine]:
        return [self.vaccines[k] for k in sorted(self.vaccines)]

    async def pet_exists(self, pet_id: int) -> bool:
        return pet_id in self.rows

    def add(self, pet: Pet) -> None:
        self._added.append(pet)

    def remove(self, pet: Pet) -> None:
        self._removed.append(pet)

    async def commit(self) -> None:
        if self.fail_on_commit is not None:
            raise self.fail_on_commit
        if self.conflict_on_commit:
            pet_id = next(iter(self._tracked))
            if self.delete_on_conflict:
                self.rows.pop(pet_id, None)
            raise ConcurrencyConflict(pet_id)

        for pet in self._removed:
            self.rows.pop(pet.pet_id, None)
            self._tracked.pop(pet.pet_id, None)
        self._removed.clear()

        for pet in self._added:
            if pet.owner_id not in self.owners:
                raise ForeignKeyViolation("owner_id", pet.owner_id)
            pet.pet_id = self._next_id
            self._next_id += 1
            stored = pet.model_copy(deep=True)
            stored.owner = None
            stored.vaccines = list(pet.vaccines or [])
            self.rows[pet.pet_id] = stored
        self._added.clear()

        for pet_id, (pet, snapshot) in list(self._tracked.items()):
            if pet.model_dump() == snapshot:
                continue
            if pet.owner_id not in self.owners:
                raise ForeignKeyViolation("owner_id", pet.owner_id)
            stored = self.rows[pet_id]
            stored.name, stored.type, stored.age, stored.owner_id = pet.name, pet.type, pet.age, pet.owner_id
            if pet.vaccines is not None:
                stored.vaccines = list(pet.vaccines)
            stored.version += 1
        self.commits += 1

    def close(self) -> None:
        self.closed = True


RABIES = Vaccine(vaccine_id=1, name="Rabies")
DISTEMPER = Vaccine(vaccine_id=2, name="Distemper")
PARVO = Vaccine(vaccine_id=3, name="Parvovirus")


@pytest.fixture
def session():
    """Dos dueños, tres vacunas y dos mascotas (ids 5 y 6)"""
    return FakePetSession(
        owners=[Owner(owner_id=1, name="Laura Martín"), Owner(owner_id=2, name="Carlos Ruiz")],
        vaccines=[RABIES, DISTEMPER, PARVO],
        pets=[
            Pet(pet_id=5, name="Luna", type="Dog", age=3, owner_id=1, vaccines=[RABIES, DISTEMPER]),
            Pet(pet_id=6, name="Michi", type="Cat", age=1.5, owner_id=2, vaccines=[]),
        ],
    )

@pytest.fixture
def admin():
    return Principal(id="admin-1", name="Admin", email="admin@vetclinic.com", roles=["Admin"])

@pytest.fixture
def staff():
    return Principal(id="staff-1", name="Staff", email="staff@vetclinic.com", roles=[])

@pytest.fixture
def controller(session):
    return PetController(session, admin_role="Admin")

@pytest.fixture
def mongo_db():
    """Base de datos MongoDB en memoria (mongomock-motor)"""
    client = AsyncMongoMockClient()
    return client["vetclinic_test"]

async def seed_reference_data(db):
    """Dos dueños y tres vacunas con los mismos ids que `session`"""
    await db.owners.insert_many([{"_id": 1, "name": "Laura Martín"}, {"_id": 2, "name": "Carlos Ruiz"}])
    await db.vaccines.insert_many([
        {"_id": 1, "name": "Rabies"},
        {"_id": 2, "name": "Distemper"},
        {"_id": 3, "name": "Parvovirus"},
    ])

def _make_client(session, principal=None):
    from vetclinic.main import app
    # Deshabilitar rate limiting
    app.state.limiter = None
    app.dependency_overrides[get_pet_session] = lambda: session
    if principal is not None:
        app.dependency_overrides[get_current_principal] = lambda: principal
    return TestClient(app, follow_redirects=False)

@pytest.fixture
def client(session, admin):
    """Cliente autenticado como Admin"""
    yield _make_client(session, admin)
    from vetclinic.main import app
    app.dependency_overrides.clear()

@pytest.fixture
def staff_client(session, staff):
    """Cliente autenticado sin rol Admin"""
    yield _make_client(session, staff)
    from vetclinic.main import app
    app.dependency_overrides.clear()

@pytest.fixture
def anonymous_client(session):
    """Cliente sin token"""
    yield _make_client(session)
    from vetclinic.main import app
    app.dependency_overrides.clear()
