import datetime

from pydantic import BaseModel


class RunRecurringRequest(BaseModel):
    # Run as if today were this date; defaults to the scheduler's local today.
    date: datetime.date | None = None


class EmailExistsResponse(BaseModel):
    exists: bool
