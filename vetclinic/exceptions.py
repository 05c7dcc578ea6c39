"""
Errores de la capa de almacenamiento.
"""


class StorageError(Exception):
    """Error genérico al persistir cambios."""


class ConcurrencyConflict(StorageError):
    """La mascota cambió (o desapareció) desde que se cargó."""

    def __init__(self, pet_id: int):
        self.pet_id = pet_id
        super().__init__(f"Pet {pet_id} was modified or deleted by another request")


class ForeignKeyViolation(StorageError):
    """Un campo referencia un documento que no existe."""

    def __init__(self, field: str, value):
        self.field = field
        self.value = value
        super().__init__(f"{field} {value} does not reference an existing record")
