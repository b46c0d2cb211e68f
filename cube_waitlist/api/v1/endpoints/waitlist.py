from fastapi import APIRouter, Depends, HTTPException, status
from typing import List

from cube_waitlist.core.deps import enforce_rate_limit, get_waitlist_service, require_admin
from cube_waitlist.core.exceptions import (
    DuplicateEntryError,
    InvalidInputError,
    NotFoundError,
    PartialDeletionFailureError,
    StoreUnavailableError,
)
from cube_waitlist.schemas.waitlist import DeletionOut, WaitlistEntryOut, WaitlistIn, WaitlistOut
from cube_waitlist.services.waitlist_service import WaitlistService

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


def _store_unavailable(e: StoreUnavailableError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


def _partial_failure(e: PartialDeletionFailureError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": e.message, "removed": e.removed, "failures": e.failures},
    )


@router.post(
    "",
    response_model=WaitlistOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_rate_limit)],
)
async def join_waitlist(payload: WaitlistIn, service: WaitlistService = Depends(get_waitlist_service)):
    """Add an email to the waitlist and send the confirmation in the background."""
    try:
        result = await service.register(payload.email, source=payload.source)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except DuplicateEntryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    return WaitlistOut(email=result.email)


@router.get("", response_model=List[WaitlistEntryOut], dependencies=[Depends(require_admin)])
async def list_waitlist(service: WaitlistService = Depends(get_waitlist_service)):
    try:
        entries = await service.list_all()
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    return [WaitlistEntryOut.model_validate(entry) for entry in entries]


@router.delete("/{email}", response_model=DeletionOut, dependencies=[Depends(require_admin)])
async def remove_from_waitlist(email: str, service: WaitlistService = Depends(get_waitlist_service)):
    """Remove every entry for this email (there can be more than one after a race)."""
    try:
        report = await service.delete_by_email(email)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except PartialDeletionFailureError as e:
        raise _partial_failure(e)
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    return DeletionOut(removed=report.removed)


@router.delete("", response_model=DeletionOut, dependencies=[Depends(require_admin)])
async def clear_waitlist(service: WaitlistService = Depends(get_waitlist_service)):
    try:
        report = await service.delete_all()
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except PartialDeletionFailureError as e:
        raise _partial_failure(e)
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    return DeletionOut(removed=report.removed)
