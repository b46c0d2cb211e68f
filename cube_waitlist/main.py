import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cube_waitlist.api.v1.api import api_router
from cube_waitlist.core.config import Settings, settings
from cube_waitlist.services.entry_store import EntryStore, build_entry_store
from cube_waitlist.services.notification_dispatcher import NotificationDispatcher
from cube_waitlist.services.notifier import Notifier, build_notifier
from cube_waitlist.services.waitlist_service import WaitlistService
from cube_waitlist.utils.rate_limiter import RateLimiter

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Audit logger emits raw JSON lines without extra prefixes
    audit_logger = logging.getLogger("audit")
    if not audit_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        audit_logger.addHandler(handler)
    audit_logger.setLevel(logging.INFO)
    # Do not propagate to root to avoid duplication
    audit_logger.propagate = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    await app.state.store.initialize()
    logger.info("🪴 Waitlist store ready")
    try:
        yield
    finally:
        # Let confirmations already in flight finish before the loop goes away
        await app.state.dispatcher.drain()
        await app.state.store.close()
        app.state.rate_limiter.close()


def create_app(
    app_settings: Optional[Settings] = None,
    store: Optional[EntryStore] = None,
    notifier: Optional[Notifier] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Build the API with its long-lived store, notifier and rate limiter.

    Collaborators default to the ones described by the settings; tests pass
    their own.
    """
    app_settings = app_settings or settings
    configure_logging(app_settings.DEBUG)

    store = store or build_entry_store(app_settings)
    dispatcher = NotificationDispatcher(notifier or build_notifier(app_settings))
    service = WaitlistService(
        store,
        dispatcher,
        case_insensitive=app_settings.WAITLIST_CASE_INSENSITIVE,
        await_delivery=app_settings.NOTIFY_AWAIT_DELIVERY,
    )

    app = FastAPI(
        title="The Cube Waitlist API",
        description="Waitlist registration for The Cube's web app",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.waitlist_service = service
    app.state.rate_limiter = rate_limiter or RateLimiter.from_url(app_settings.REDIS_URL)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {"message": "The Cube Waitlist API is running"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
