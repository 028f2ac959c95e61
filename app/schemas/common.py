from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional

class CamelModel(BaseModel):
    """Wire models speak camelCase; Python code uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    error_code: Optional[str] = None

class DatabaseError(ErrorResponse):
    error_code: str = "DATABASE_ERROR"

class MessageOut(CamelModel):
    message: str
