from datetime import datetime

from pydantic import BaseModel

from app.models.history import HistorySubject


class HistoryEntryOut(BaseModel):
    id: str
    subject_type: HistorySubject
    subject_id: str
    sequence: int
    actor_id: str
    action: str
    previous_status: str | None = None
    status: str
    note: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
