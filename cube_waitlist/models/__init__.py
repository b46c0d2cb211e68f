# Import all models here so Base.metadata knows every table
from cube_waitlist.models.waitlist_entry import WaitlistEntry

__all__ = [
    "WaitlistEntry",
]
