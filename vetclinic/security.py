from datetime import datetime, timedelta
from typing import Optional, List
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from .config import get_settings
from .db import get_db
from .utils import to_id, to_object_id

settings = get_settings()
ALGO = "HS256"
pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


class Principal(BaseModel):
    """Usuario autenticado y sus roles. Se inyecta en el controlador."""
    id: str
    name: str = ""
    email: Optional[str] = None
    roles: List[str] = []

    def is_in_role(self, role: str) -> bool:
        return role in self.roles


def hash_password(plain: str) -> str:
    return pwd.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd.verify(plain, hashed)


def create_access_token(user_id: str, expires_hours: Optional[int] = None) -> str:
    expire = datetime.utcnow() + timedelta(hours=expires_hours or settings.jwt_expires_hours)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGO])
        sub = payload.get("sub")
        if not sub:
            raise HTTPException(status_code=401, detail="Invalid token")
        return str(sub)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    doc = await db.users.find_one({"_id": to_object_id(user_id, "token subject", status_code=401)})
    if not doc:
        raise HTTPException(status_code=401, detail="User not found")
    return to_id(doc)


async def get_current_principal(current=Depends(get_current_user)) -> Principal:
    return Principal(
        id=current["id"],
        name=current.get("name") or "",
        email=current.get("email"),
        roles=list(current.get("roles") or []),
    )
