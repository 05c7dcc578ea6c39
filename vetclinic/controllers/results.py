from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

class Outcome(str, Enum):
    ok = "ok"
    redirect = "redirect"
    invalid = "invalid"
    bad_request = "bad_request"
    not_found = "not_found"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    failed = "failed"

class ActionResult(BaseModel):
    """
    Resultado de una acción del controlador.
    El router lo traduce a respuesta HTTP; así se distingue un fallo de un éxito.
    """
    outcome: Outcome
    view: Any = None
    message: Optional[str] = None
    errors: Dict[str, List[str]] = Field(default_factory=dict)
    redirect_to: Optional[str] = None

    @classmethod
    def ok(cls, view: Any) -> "ActionResult":
        return cls(outcome=Outcome.ok, view=view)

    @classmethod
    def redirect(cls, route_name: str) -> "ActionResult":
        return cls(outcome=Outcome.redirect, redirect_to=route_name)

    @classmethod
    def invalid(cls, view: Any, errors: Dict[str, List[str]]) -> "ActionResult":
        return cls(outcome=Outcome.invalid, view=view, errors=errors)

    @classmethod
    def bad_request(cls, message: str) -> "ActionResult":
        return cls(outcome=Outcome.bad_request, message=message)

    @classmethod
    def not_found(cls, message: str) -> "ActionResult":
        return cls(outcome=Outcome.not_found, message=message)

    @classmethod
    def unauthorized(cls) -> "ActionResult":
        return cls(outcome=Outcome.unauthorized, message="Not authenticated")

    @classmethod
    def forbidden(cls, role: str) -> "ActionResult":
        return cls(outcome=Outcome.forbidden, message=f"Requires role {role}")

    @classmethod
    def failed(cls, message: str) -> "ActionResult":
        return cls(outcome=Outcome.failed, message=message)
