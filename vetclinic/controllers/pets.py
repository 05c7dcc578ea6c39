"""
Lógica de las acciones sobre mascotas.

El controlador no sabe nada de HTTP: recibe el usuario autenticado (Principal),
una sesión de almacenamiento y la entrada del formulario, y devuelve un
ActionResult que el router convierte en respuesta.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type
import logging
import re

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..exceptions import ConcurrencyConflict, ForeignKeyViolation
from ..repositories.pets import PetSession
from ..schemas.pet import EDITABLE_FIELDS, Pet, PetForm, PetIn, PetUpdate, SelectOption
from ..schemas.vaccine import Vaccine
from ..security import Principal
from .results import ActionResult

logger = logging.getLogger(__name__)

TYPE_ERROR = "The pet type should contain only letters and cannot contain numbers or special characters."
MISSING_ID = "Pet Id is missing"
LIST_ROUTE = "list_pets"

_NON_LETTER = re.compile(r"[^a-zA-Z]")
_selected_ids = TypeAdapter(Optional[List[int]])


def is_type_valid(value: Optional[str]) -> bool:
    """True si el tipo solo contiene letras a-z/A-Z (la cadena vacía es válida)."""
    return not _NON_LETTER.search(value or "")


def not_found_message(pet_id: int) -> str:
    return f"Pet with id {pet_id} was not found"


def reconcile_vaccines(current: List[Vaccine], target: List[Vaccine]) -> Tuple[List[Vaccine], List[Vaccine]]:
    """Devuelve (a_añadir, a_quitar) para que `current` pase a ser `target`."""
    current_ids = {v.vaccine_id for v in current}
    target_ids = {v.vaccine_id for v in target}
    to_add = [v for v in target if v.vaccine_id not in current_ids]
    to_remove = [v for v in current if v.vaccine_id not in target_ids]
    return to_add, to_remove


def apply_vaccine_selection(pet: Pet, target: List[Vaccine]) -> None:
    current = pet.vaccines or []
    to_add, to_remove = reconcile_vaccines(current, target)
    removed = {v.vaccine_id for v in to_remove}
    pet.vaccines = [v for v in current if v.vaccine_id not in removed] + to_add


# ---------- binding ----------

def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None

def _field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("__all__",)
        errors.setdefault(str(loc[0]), []).append(err["msg"])
    return errors

def _bind(model: Type[BaseModel], payload: Dict[str, Any]) -> Tuple[Optional[BaseModel], Dict[str, List[str]]]:
    try:
        return model.model_validate(payload), {}
    except ValidationError as exc:
        return None, _field_errors(exc)

def _read_selected_ids(payload: Dict[str, Any]) -> Tuple[Optional[List[int]], Dict[str, List[str]]]:
    try:
        return _selected_ids.validate_python(payload.get("selected_vaccine_ids")), {}
    except ValidationError as exc:
        return [], {"selected_vaccine_ids": [e["msg"] for e in exc.errors()]}

def _form_input(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: payload[k] for k in ("pet_id",) + EDITABLE_FIELDS if k in payload}

def _merge(*groups: Dict[str, List[str]]) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for group in groups:
        for field, messages in group.items():
            errors.setdefault(field, []).extend(messages)
    return errors


class PetController:
    def __init__(self, session: PetSession, admin_role: str = "Admin"):
        self._session = session
        self._admin_role = admin_role

    def _authorize(self, principal: Optional[Principal], role: Optional[str] = None) -> Optional[ActionResult]:
        if principal is None:
            return ActionResult.unauthorized()
        if role and not principal.is_in_role(role):
            return ActionResult.forbidden(role)
        return None

    async def _resolve_vaccines(self, vaccine_ids: Iterable[int]) -> List[Vaccine]:
        found: List[Vaccine] = []
        seen = set()
        for vaccine_id in vaccine_ids:
            if vaccine_id in seen:
                continue
            seen.add(vaccine_id)
            vaccine = await self._session.find_vaccine(vaccine_id)
            if vaccine is not None:
                found.append(vaccine)
        return found

    async def _form(
        self,
        pet_input: Dict[str, Any],
        owner_id: Optional[int] = None,
        vaccine_ids: Iterable[int] = (),
        errors: Optional[Dict[str, List[str]]] = None,
    ) -> PetForm:
        owners = await self._session.list_owners()
        vaccines = await self._session.list_vaccines()
        selected = set(vaccine_ids)
        return PetForm(
            pet=pet_input,
            owners=[SelectOption(value=o.owner_id, text=o.name, selected=o.owner_id == owner_id) for o in owners],
            vaccines=[SelectOption(value=v.vaccine_id, text=v.name, selected=v.vaccine_id in selected) for v in vaccines],
            errors=errors or {},
        )

    async def pet_exists(self, pet_id: int) -> bool:
        return await self._session.pet_exists(pet_id)

    # GET /pets
    async def index(self, principal: Optional[Principal]) -> ActionResult:
        denied = self._authorize(principal)
        if denied:
            return denied
        pets = await self._session.list_pets(include_owner=True)
        return ActionResult.ok(tuple(pets))

    # GET /pets/details/5
    async def details(self, principal: Optional[Principal], pet_id: Optional[int]) -> ActionResult:
        denied = self._authorize(principal)
        if denied:
            return denied
        if pet_id is None:
            return ActionResult.bad_request(MISSING_ID)

        pet = await self._session.get_pet(pet_id, include_owner=True, include_vaccines=True)
        if pet is None:
            return ActionResult.not_found(not_found_message(pet_id))
        return ActionResult.ok(pet)

    # GET /pets/create
    async def create_form(self, principal: Optional[Principal]) -> ActionResult:
        denied = self._authorize(principal)
        if denied:
            return denied
        return ActionResult.ok(await self._form({}))

    # POST /pets/create
    async def create(self, principal: Optional[Principal], payload: Dict[str, Any]) -> ActionResult:
        denied = self._authorize(principal)
        if denied:
            return denied

        pet_input = _form_input(payload)
        owner_id = _as_int(payload.get("owner_id"))
        try:
            selected_ids, id_errors = _read_selected_ids(payload)
            vaccines = await self._resolve_vaccines(selected_ids) if selected_ids is not None else []

            bound, bind_errors = _bind(PetIn, payload)
            errors = _merge(bind_errors, id_errors)

            raw_type = payload.get("type")
            if not is_type_valid(None if raw_type is None else str(raw_type)):
                errors = _merge(errors, {"type": [TYPE_ERROR]})
                form = await self._form(pet_input, owner_id=owner_id, errors=errors)
                return ActionResult.invalid(form, errors)

            if errors:
                form = await self._form(pet_input, owner_id=owner_id, errors=errors)
                return ActionResult.invalid(form, errors)

            # el id lo genera el almacenamiento
            pet = Pet(**bound.model_dump(include=set(EDITABLE_FIELDS)), vaccines=vaccines)
            self._session.add(pet)
            await self._session.commit()
            return ActionResult.redirect(LIST_ROUTE)
        except ForeignKeyViolation as e:
            errors = {e.field: [str(e)]}
            form = await self._form(pet_input, owner_id=owner_id, errors=errors)
            return ActionResult.invalid(form, errors)
        except Exception as e:
            logger.error(f"Error creating pet: {e}", exc_info=True)
            return ActionResult.failed("The pet could not be created")

    # GET /pets/edit/5
    async def edit_form(self, principal: Optional[Principal], pet_id: Optional[int]) -> ActionResult:
        denied = self._authorize(principal, self._admin_role)
        if denied:
            return denied
        if pet_id is None:
            return ActionResult.bad_request(MISSING_ID)

        pet = await self._session.get_pet(pet_id, include_vaccines=True)
        if pet is None:
            return ActionResult.not_found(not_found_message(pet_id))

        pet_input = pet.model_dump(include={"pet_id", *EDITABLE_FIELDS})
        vaccine_ids = [v.vaccine_id for v in pet.vaccines or []]
        return ActionResult.ok(await self._form(pet_input, owner_id=pet.owner_id, vaccine_ids=vaccine_ids))

    # POST /pets/edit/5
    async def edit(self, principal: Optional[Principal], pet_id: int, payload: Dict[str, Any]) -> ActionResult:
        denied = self._authorize(principal, self._admin_role)
        if denied:
            return denied

        submitted_id = _as_int(payload.get("pet_id"))
        if submitted_id != pet_id:
            return ActionResult.bad_request(f"Pet id {pet_id} does not match the submitted pet id {submitted_id}")

        pet_input = _form_input(payload)
        owner_id = _as_int(payload.get("owner_id"))
        selected_ids: Optional[List[int]] = None
        try:
            pet = await self._session.get_pet(pet_id, include_vaccines=True)
            if pet is None:
                return ActionResult.not_found(not_found_message(pet_id))

            selected_ids, id_errors = _read_selected_ids(payload)
            target = await self._resolve_vaccines(selected_ids) if selected_ids is not None else []
            apply_vaccine_selection(pet, target)

            # solo name, type, age y owner_id; el tipo no pasa por is_type_valid aquí
            changes, bind_errors = _bind(PetUpdate, payload)
            errors = _merge(bind_errors, id_errors)
            if errors:
                form = await self._form(pet_input, owner_id=owner_id, vaccine_ids=selected_ids or [], errors=errors)
                return ActionResult.invalid(form, errors)

            for field in EDITABLE_FIELDS:
                setattr(pet, field, getattr(changes, field))

            try:
                await self._session.commit()
            except ConcurrencyConflict:
                if not await self.pet_exists(pet_id):
                    return ActionResult.not_found(not_found_message(pet_id))
                raise
            return ActionResult.redirect(LIST_ROUTE)
        except ForeignKeyViolation as e:
            errors = {e.field: [str(e)]}
            form = await self._form(pet_input, owner_id=owner_id, vaccine_ids=selected_ids or [], errors=errors)
            return ActionResult.invalid(form, errors)
        except ConcurrencyConflict as e:
            logger.error(f"Concurrency conflict updating pet {pet_id}: {e}", exc_info=True)
            return ActionResult.failed(str(e))
        except Exception as e:
            logger.error(f"Error updating pet {pet_id}: {e}", exc_info=True)
            return ActionResult.failed("The pet could not be updated")

    # GET /pets/delete/5
    async def delete_confirm(self, principal: Optional[Principal], pet_id: Optional[int]) -> ActionResult:
        denied = self._authorize(principal, self._admin_role)
        if denied:
            return denied
        if pet_id is None:
            return ActionResult.bad_request(MISSING_ID)

        pet = await self._session.get_pet(pet_id, include_owner=True)
        if pet is None:
            return ActionResult.not_found(not_found_message(pet_id))
        return ActionResult.ok(pet)

    # POST /pets/delete/5
    async def delete_confirmed(self, principal: Optional[Principal], pet_id: int) -> ActionResult:
        denied = self._authorize(principal, self._admin_role)
        if denied:
            return denied

        pet = await self._session.get_pet(pet_id)
        if pet is None:
            return ActionResult.not_found(not_found_message(pet_id))

        self._session.remove(pet)
        await self._session.commit()
        logger.info(f"Mascota {pet_id} eliminada por {principal.id}")
        return ActionResult.redirect(LIST_ROUTE)
