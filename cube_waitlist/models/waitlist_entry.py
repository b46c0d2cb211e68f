import uuid
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.sql import func
from cube_waitlist.core.database import Base

class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"
    id = Column(Uuid(), primary_key=True, default=uuid.uuid4)
    # No unique constraint here: uniqueness is checked by the service, and
    # WAITLIST_UNIQUE_INDEX adds one at init time when wanted
    email = Column(String, nullable=False, index=True)
    source = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<WaitlistEntry {self.email}>"
