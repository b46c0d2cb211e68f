#!/usr/bin/env python3
"""
Initialize the waitlist database tables
"""
from cube_waitlist.core.config import settings
from cube_waitlist.core.database import create_db_engine, init_db


def init_database():
    """Create tables, plus the unique email index when WAITLIST_UNIQUE_INDEX is set"""
    if settings.DATABASE_URL.startswith("memory://"):
        print("In-memory store configured, nothing to initialize.")
        return

    engine = create_db_engine(settings.DATABASE_URL)
    print("Creating database tables...")
    init_db(engine, unique_index=settings.WAITLIST_UNIQUE_INDEX)
    if settings.WAITLIST_UNIQUE_INDEX:
        print("Unique email index ensured.")
    print("Tables created successfully!")
    engine.dispose()


if __name__ == "__main__":
    init_database()
