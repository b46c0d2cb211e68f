from fastapi import APIRouter
from cube_waitlist.api.v1.endpoints import waitlist

api_router = APIRouter()

api_router.include_router(waitlist.router)
