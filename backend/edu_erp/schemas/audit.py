# edu_erp/schemas/audit.py
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, IPvAnyAddress


class AuditUserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str
    role: str


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    school_id: UUID
    user_id: Optional[UUID] = None
    action: str
    entity_type: str
    entity_id: str
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    ip_address: Optional[IPvAnyAddress] = None
    user_agent: Optional[str] = None
    created_at: datetime


class AuditLogWithUserRead(AuditLogRead):
    user: Optional[AuditUserRead] = None
