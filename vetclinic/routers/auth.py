from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr, Field
from motor.motor_asyncio import AsyncIOMotorDatabase
from ..config import get_settings
from ..db import get_db
from ..security import verify_password, create_access_token
from ..middleware.rate_limit import apply_rate_limit
import logging

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()

class Login(BaseModel):
    email: EmailStr = Field(..., description="Email del usuario")
    password: str = Field(..., min_length=1, description="Contraseña")

@router.post("/login")
async def login(request: Request, payload: Login, db: AsyncIOMotorDatabase = Depends(get_db)):
    # Rate limiting por IP
    apply_rate_limit(request, settings.login_rate_limit)

    user = await db.users.find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        logger.warning(f"Login fallido para {payload.email}")
        raise HTTPException(401, "Invalid credentials")
    token = create_access_token(str(user["_id"]))
    return {"access_token": token, "token_type": "bearer"}
