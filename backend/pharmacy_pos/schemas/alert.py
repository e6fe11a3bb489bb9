from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AlertRecord(BaseModel):
    id: str
    medicine_id: str
    medicine_name: str
    current_stock: int
    threshold: int
    priority: str
    status: str
    created_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    dismissed_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True
