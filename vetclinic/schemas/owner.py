from pydantic import BaseModel

class Owner(BaseModel):
    owner_id: int
    name: str
