from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Any, List, Optional


class LogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ts: datetime
    user_id: Optional[int] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    meta: Optional[Any] = None


# One page of audit entries, newest first
class LogPage(BaseModel):
    items: List[LogResponse]
    total: int
    page: int
    page_size: int
