"""
Tournament and event registrations.

A purchaser holds at most one non-cancelled registration per tournament or
event. Registrations paid online are settled by the payment webhook
(entity_type tournament/event, entity_id = registration id).
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.exceptions import ConflictError, NotFoundError, TransactionError, ValidationError
from arena.core.logging import get_logger
from arena.core.security import CurrentUser
from arena.domain.enums import EntityType, RegistrationPaymentStatus, RegistrationStatus
from arena.domain.purchaser import Purchaser, generate_reference
from arena.models.catalog import Tournament, VenueEvent
from arena.models.registration import EventRegistration, TournamentRegistration
from arena.schemas.registration import RegistrationCreate
from arena.services import notification_service
from arena.services.notification_service import NotificationMessage
from arena.services.patch import build_update

logger = get_logger(__name__)

# kind -> (registration model, target model, target column)
REGISTRATION_KINDS = {
    EntityType.TOURNAMENT: (TournamentRegistration, Tournament, "tournament_id"),
    EntityType.EVENT: (EventRegistration, VenueEvent, "event_id"),
}

REGISTRATION_UPDATE_FIELDS = {"status", "payment_status", "payment_option"}


def _kind(kind: EntityType):
    try:
        return REGISTRATION_KINDS[kind]
    except KeyError:
        raise ValidationError(f"Cannot register for {kind.value}")


def _owner_criteria(model, purchaser: Purchaser) -> tuple:
    if purchaser.is_guest:
        return (model.user_id.is_(None), model.guest_email == purchaser.email)
    return (model.user_id == purchaser.user_id,)


async def register(
    db: AsyncSession,
    kind: EntityType,
    target_id: int,
    purchaser: Purchaser,
    data: RegistrationCreate,
):
    model, target_model, target_field = _kind(kind)
    target_column = getattr(model, target_field)

    target = await db.get(target_model, target_id)
    if target is None:
        raise NotFoundError(f"{kind.value.capitalize()} {target_id} not found")

    active = (target_column == target_id, model.status != RegistrationStatus.CANCELLED.value)

    existing = (
        await db.execute(select(func.count(model.id)).where(*active, *_owner_criteria(model, purchaser)))
    ).scalar_one()
    if existing:
        raise ConflictError(f"Already registered for this {kind.value}")

    limit = getattr(target, "max_participants", None)
    if limit is not None:
        taken = (await db.execute(select(func.count(model.id)).where(*active))).scalar_one()
        if taken >= limit:
            raise ConflictError(f"{kind.value.capitalize()} is full")

    registration = model(
        status=RegistrationStatus.REGISTERED.value,
        payment_status=RegistrationPaymentStatus.PENDING.value,
        payment_option=data.payment_option.value,
        registration_reference=generate_reference("REG") if purchaser.is_guest else None,
        **{target_field: target_id},
        **purchaser.columns(),
    )
    db.add(registration)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("registration_commit_failed", kind=kind.value, target_id=target_id, error=str(e))
        raise TransactionError("Failed to register", detail=str(e))
    await db.refresh(registration)

    logger.info(
        "registration_created",
        kind=kind.value,
        registration_id=registration.id,
        target_id=target_id,
        user_id=purchaser.user_id,
        guest=purchaser.is_guest,
    )
    await notification_service.dispatch(
        db,
        NotificationMessage(
            type=f"{kind.value}_registration",
            subject="Registration received",
            message=f"Registration for {target.name} has been received.",
        ),
        user_id=purchaser.user_id,
    )
    return registration


async def list_user_registrations(db: AsyncSession, user_id: int) -> dict:
    result = {}
    for kind, (model, _, _) in REGISTRATION_KINDS.items():
        rows = await db.execute(
            select(model).where(model.user_id == user_id).order_by(model.created_at.desc(), model.id.desc())
        )
        result[kind.value] = list(rows.scalars().all())
    return result


async def cancel_registration(db: AsyncSession, kind: EntityType, registration_id: int, user: CurrentUser):
    model, _, _ = _kind(kind)
    registration = await db.get(model, registration_id)
    if registration is None or (not user.is_admin and registration.user_id != user.id):
        raise NotFoundError("Registration not found")
    if registration.status == RegistrationStatus.CANCELLED.value:
        raise ValidationError("Registration is already cancelled")

    registration.status = RegistrationStatus.CANCELLED.value
    await db.commit()
    await db.refresh(registration)
    logger.info("registration_cancelled", kind=kind.value, registration_id=registration_id, user_id=user.id)
    return registration


async def get_registration(db: AsyncSession, kind: EntityType, registration_id: int, user: CurrentUser):
    model, _, _ = _kind(kind)
    registration = await db.get(model, registration_id)
    if registration is None or (not user.is_admin and registration.user_id != user.id):
        raise NotFoundError("Registration not found")
    return registration


async def list_all_registrations(db: AsyncSession, kind: EntityType, status: Optional[str] = None) -> list:
    model, _, _ = _kind(kind)
    query = select(model)
    if status:
        query = query.where(model.status == status)
    result = await db.execute(query.order_by(model.created_at.desc(), model.id.desc()))
    return list(result.scalars().all())


async def update_registration(db: AsyncSession, kind: EntityType, registration_id: int, patch: dict, admin: CurrentUser):
    """Admin correction, e.g. marking an at-event registration as paid at the door."""
    model, _, _ = _kind(kind)
    registration = await get_registration(db, kind, registration_id, admin)

    await db.execute(
        build_update(model, patch, model.id == registration_id, allowed=REGISTRATION_UPDATE_FIELDS)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(registration)
    logger.info(
        "registration_updated",
        kind=kind.value,
        registration_id=registration_id,
        fields=sorted(patch),
        admin_id=admin.id,
    )

    if registration.user_id is not None:
        await notification_service.dispatch(
            db,
            NotificationMessage(
                type=f"{kind.value}_registration_updated",
                subject="Registration updated",
                message=(
                    f"Your {kind.value} registration is {registration.status}, "
                    f"payment {registration.payment_status}."
                ),
            ),
            user_id=registration.user_id,
            notify_admins=False,
        )
    return registration
