# vetclinic/utils.py
from typing import Any, Dict, Optional
from bson import ObjectId
from datetime import datetime
from fastapi import HTTPException

def to_id(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convierte _id -> id (str) y los ObjectIds/datetimes a strings.
    Si doc es None, devuelve {}.
    """
    if doc is None:
        return {}
    d = dict(doc)

    if "_id" in d:
        d["id"] = str(d.pop("_id"))

    for key, value in d.items():
        if isinstance(value, ObjectId):
            d[key] = str(value)
        elif isinstance(value, datetime):
            d[key] = value.isoformat()
        elif isinstance(value, dict):
            d[key] = to_id(value)

    return d

def to_object_id(value: str, field_name: str = "id", status_code: int = 400) -> ObjectId:
    """
    Convierte un string a ObjectId con validación.
    """
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=status_code, detail=f"Invalid {field_name}: {value}")
    return ObjectId(value)
