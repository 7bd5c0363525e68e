from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class AuditLog(BaseModel):
    id: int
    table_name: str
    action: str
    primary_key: str
    old_values: Optional[str] = None
    new_values: Optional[str] = None
    action_date: datetime
    action_by: str
    action_description: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
