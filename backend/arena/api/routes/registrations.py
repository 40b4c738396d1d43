"""
Tournament and event registration endpoints (signed-in users or guests).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.exceptions import NotFoundError
from arena.core.security import CurrentUser, get_current_user, get_optional_user, require_admin
from arena.db.session import get_db
from arena.domain.enums import EntityType
from arena.schemas.common import ApiResponse, resolve_purchaser
from arena.schemas.registration import RegistrationCreate, RegistrationResponse, RegistrationUpdate
from arena.services import registration_service

router = APIRouter(prefix="/registrations", tags=["Registrations"])


async def _register(kind, target_id, data, user, db):
    purchaser = resolve_purchaser(user, data.guest)
    registration = await registration_service.register(db, kind, target_id, purchaser, data)
    return ApiResponse(message="Registration successful", data=RegistrationResponse.model_validate(registration))


@router.post(
    "/tournaments/{tournament_id}",
    response_model=ApiResponse[RegistrationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register_for_tournament(
    tournament_id: int,
    data: RegistrationCreate,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await _register(EntityType.TOURNAMENT, tournament_id, data, user, db)


@router.post(
    "/events/{event_id}",
    response_model=ApiResponse[RegistrationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register_for_event(
    event_id: int,
    data: RegistrationCreate,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await _register(EntityType.EVENT, event_id, data, user, db)


@router.get("/", response_model=ApiResponse[dict[str, list[RegistrationResponse]]])
async def list_my_registrations(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    grouped = await registration_service.list_user_registrations(db, user.id)
    return ApiResponse(
        data={kind: [RegistrationResponse.model_validate(r) for r in rows] for kind, rows in grouped.items()}
    )


@router.post("/tournaments/{registration_id}/cancel", response_model=ApiResponse[RegistrationResponse])
async def cancel_tournament_registration(
    registration_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    registration = await registration_service.cancel_registration(db, EntityType.TOURNAMENT, registration_id, user)
    return ApiResponse(message="Registration cancelled", data=RegistrationResponse.model_validate(registration))


@router.post("/events/{registration_id}/cancel", response_model=ApiResponse[RegistrationResponse])
async def cancel_event_registration(
    registration_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    registration = await registration_service.cancel_registration(db, EntityType.EVENT, registration_id, user)
    return ApiResponse(message="Registration cancelled", data=RegistrationResponse.model_validate(registration))


# Admin

KINDS = {"tournaments": EntityType.TOURNAMENT, "events": EntityType.EVENT}


def _kind_from_path(kind: str) -> EntityType:
    if kind not in KINDS:
        raise NotFoundError("Not found")
    return KINDS[kind]


@router.get("/{kind}/all", response_model=ApiResponse[list[RegistrationResponse]])
async def list_all_registrations(
    kind: str,
    registration_status: Optional[str] = Query(default=None, alias="status"),
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows = await registration_service.list_all_registrations(db, _kind_from_path(kind), registration_status)
    return ApiResponse(data=[RegistrationResponse.model_validate(r) for r in rows])


@router.get("/{kind}/{registration_id}", response_model=ApiResponse[RegistrationResponse])
async def get_registration(
    kind: str,
    registration_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    registration = await registration_service.get_registration(db, _kind_from_path(kind), registration_id, user)
    return ApiResponse(data=RegistrationResponse.model_validate(registration))


@router.patch("/{kind}/{registration_id}", response_model=ApiResponse[RegistrationResponse])
async def update_registration(
    kind: str,
    registration_id: int,
    patch: RegistrationUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    registration = await registration_service.update_registration(
        db,
        _kind_from_path(kind),
        registration_id,
        patch.model_dump(exclude_unset=True, exclude_none=True),
        admin,
    )
    return ApiResponse(message="Registration updated successfully", data=RegistrationResponse.model_validate(registration))
