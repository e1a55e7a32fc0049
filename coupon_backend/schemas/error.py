from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    message: Any
    code: str | None = None
