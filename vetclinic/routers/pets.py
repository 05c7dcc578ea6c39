from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse
from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..controllers.pets import PetController
from ..controllers.results import ActionResult, Outcome
from ..repositories.pets import PetSession, get_pet_session
from ..schemas.pet import PetForm, PetOut
from ..security import Principal, get_current_principal

router = APIRouter()
settings = get_settings()

_ERROR_STATUS = {
    Outcome.bad_request: status.HTTP_400_BAD_REQUEST,
    Outcome.not_found: status.HTTP_404_NOT_FOUND,
    Outcome.unauthorized: status.HTTP_401_UNAUTHORIZED,
    Outcome.forbidden: status.HTTP_403_FORBIDDEN,
    Outcome.failed: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

def get_pet_controller(session: PetSession = Depends(get_pet_session)) -> PetController:
    return PetController(session, admin_role=settings.admin_role)

def _respond(request: Request, result: ActionResult):
    if result.outcome == Outcome.redirect:
        return RedirectResponse(str(request.url_for(result.redirect_to)), status_code=status.HTTP_303_SEE_OTHER)
    if result.outcome == Outcome.invalid:
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=jsonable_encoder(result.view))
    if result.outcome in _ERROR_STATUS:
        raise HTTPException(_ERROR_STATUS[result.outcome], result.message)
    return result.view

# ---------- Endpoints ----------

@router.get("", response_model=List[PetOut], name="list_pets")
async def list_pets(
    request: Request,
    current: Principal = Depends(get_current_principal),
    controller: PetController = Depends(get_pet_controller),
):
    return _respond(request, await controller.index(current))

@router.get("/details", response_model=PetOut)
@router.get("/details/{pet_id}", response_model=PetOut)
async def pet_details(
    request: Request,
    pet_id: Optional[int] = None,
    current: Principal = Depends(get_current_principal),
    controller: PetController = Depends(get_pet_controller),
):
    return _respond(request, await controller.details(current, pet_id))

@router.get("/create", response_model=PetForm)
async def create_form(
    request: Request,
    current: Principal = Depends(get_current_principal),
    controller: PetController = Depends(get_pet_controller),
):
    return _respond(request, await controller.create_form(current))

@router.post("/create")
async def create_pet(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    current: Principal = Depends(get_current_principal),
    controller: PetController = Depends(get_pet_controller),
):
    return _respond(request, await controller.create(current, payload))

@router.get("/edit", response_model=PetForm)
@router.get("/edit/{pet_id}", response_model=PetForm)
async def edit_form(
    request: Request,
    pet_id: Optional[int] = None,
    current: Principal = Depends(get_current_principal),
    controller: PetController = Depends(get_pet_controller),
):
    return _respond(request, await controller.edit_form(current, pet_id))

@router.post("/edit/{pet_id}")
async def edit_pet(
    request: Request,
    pet_id: int,
    payload: Dict[str, Any] = Body(...),
    current: Principal = Depends(get_current_principal),
    controller: PetController = Depends(get_pet_controller),
):
    return _respond(request, await controller.edit(current, pet_id, payload))

@router.get("/delete", response_model=PetOut)
@router.get("/delete/{pet_id}", response_model=PetOut)
async def delete_confirm(
    request: Request,
    pet_id: Optional[int] = None,
    current: Principal = Depends(get_current_principal),
    controller: PetController = Depends(get_pet_controller),
):
    return _respond(request, await controller.delete_confirm(current, pet_id))

@router.post("/delete/{pet_id}")
async def delete_pet(
    request: Request,
    pet_id: int,
    current: Principal = Depends(get_current_principal),
    controller: PetController = Depends(get_pet_controller),
):
    return _respond(request, await controller.delete_confirmed(current, pet_id))
