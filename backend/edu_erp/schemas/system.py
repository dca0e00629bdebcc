# edu_erp/schemas/system.py
from typing import Dict, Any, List, Optional
from pydantic import BaseModel


class GenericResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[Dict[str, Any] | List[Any]] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    app: str
    version: str
    environment: str
    database: Dict[str, Any]
