from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

class MaterializationReport(BaseModel):
    run_date: date
    users_scanned: int = 0
    templates_due: int = 0
    created: int = 0
    skipped_existing: int = 0
    failed_users: list[str] = Field(default_factory=list)
    duration_seconds: float = 0.0

class DeletionReport(BaseModel):
    user_id: str
    policy: str # "full_delete" or "member_remove"
    documents_deleted: dict[str, int] = Field(default_factory=dict)
    root_deleted: bool = False
    partnerships_affected: int = 0
    completed: bool = False
    error: Optional[str] = None
