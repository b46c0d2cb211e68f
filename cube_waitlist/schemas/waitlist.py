from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
import uuid

class WaitlistIn(BaseModel):
    # Format is checked by the service so malformed input maps to 400, not 422
    email: str
    source: Optional[str] = Field(default=None, max_length=64)

class WaitlistOut(BaseModel):
    email: str
    message: str = "You're on the waitlist! Check your inbox for a confirmation."

class WaitlistEntryOut(BaseModel):
    id: uuid.UUID
    email: str
    source: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class DeletionOut(BaseModel):
    removed: int
