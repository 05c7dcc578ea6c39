from pydantic import BaseModel

class Vaccine(BaseModel):
    vaccine_id: int
    name: str
