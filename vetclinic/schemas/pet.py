from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from .owner import Owner
from .vaccine import Vaccine

# Campos que se pueden modificar al editar una mascota
EDITABLE_FIELDS = ("name", "type", "age", "owner_id")

class Pet(BaseModel):
    """Mascota tal y como la maneja la sesión de almacenamiento."""
    pet_id: Optional[int] = None
    name: str
    type: str = ""
    age: float = 0
    owner_id: int
    owner: Optional[Owner] = None
    # None = colección no cargada (sin join)
    vaccines: Optional[List[Vaccine]] = None
    version: int = 0

class PetUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)
    type: str = Field("", max_length=40)
    age: float = Field(0, ge=0)
    owner_id: int

class PetIn(PetUpdate):
    pet_id: Optional[int] = None

class PetOut(BaseModel):
    pet_id: int
    name: str
    type: str
    age: float
    owner_id: int
    owner: Optional[Owner] = None
    vaccines: Optional[List[Vaccine]] = None

class SelectOption(BaseModel):
    value: int
    text: str
    selected: bool = False

class PetForm(BaseModel):
    # entrada actual del formulario (sin validar)
    pet: Dict[str, Any] = Field(default_factory=dict)
    owners: List[SelectOption] = Field(default_factory=list)
    vaccines: List[SelectOption] = Field(default_factory=list)
    errors: Dict[str, List[str]] = Field(default_factory=dict)
