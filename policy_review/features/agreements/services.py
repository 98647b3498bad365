import logging

from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from policy_review.enums import AgreementStatus, AgreementType
from policy_review.models import Agreement as DBAgreement, AgreementVersion as DBAgreementVersion


logger = logging.getLogger(__name__)

ALLOWED_STATUS_TRANSITIONS: dict[AgreementStatus, set[AgreementStatus]] = {
    AgreementStatus.REVIEW: {AgreementStatus.APPROVED},
    AgreementStatus.APPROVED: {AgreementStatus.REVIEW},
}

INCOMING_CHANGE_NOTE = "Incoming 1"


async def get_agreement(db: AsyncSession, agreement_id: UUID) -> DBAgreement:
    """fetch an agreement by ID or raise a 404"""

    query = select(DBAgreement).where(DBAgreement.id == agreement_id)
    result = await db.execute(query)
    agreement = result.scalar_one_or_none()
    if not agreement:
        raise HTTPException(status_code=404, detail=f"agreement_id={agreement_id} not found")
    return agreement


async def list_versions(db: AsyncSession, agreement_id: UUID) -> list[DBAgreementVersion]:
    """list all versions for an agreement in ascending version order"""

    query = select(DBAgreementVersion).where(DBAgreementVersion.agreement_id == agreement_id).order_by(DBAgreementVersion.version_number.asc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_original_version(db: AsyncSession, agreement_id: UUID) -> DBAgreementVersion | None:
    """get the first (original incoming) version of an agreement"""

    query = select(DBAgreementVersion).where(DBAgreementVersion.agreement_id == agreement_id).order_by(DBAgreementVersion.version_number.asc()).limit(1)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def create_incoming_agreement(db: AsyncSession, agreement_type: AgreementType, counterparty: str, content: str) -> DBAgreement:
    """create a new agreement under review along with its original incoming version"""

    if not content or not content.strip():
        raise HTTPException(status_code=400, detail="agreement content is required")
    if not counterparty or not counterparty.strip():
        raise HTTPException(status_code=400, detail="counterparty is required")

    agreement = DBAgreement(type=agreement_type, counterparty=counterparty.strip(), status=AgreementStatus.REVIEW, review_generation=0)
    db.add(agreement)
    await db.flush()
    db.add(DBAgreementVersion(agreement_id=agreement.id, version_number=1, content=content, change_note=INCOMING_CHANGE_NOTE))
    await db.commit()
    await db.refresh(agreement)
    logger.info(f"created incoming agreement: agreement_id={agreement.id} type={agreement_type.value} counterparty={agreement.counterparty}")
    return agreement


async def create_version(db: AsyncSession, agreement_id: UUID, content: str, change_note: str | None) -> DBAgreementVersion:
    """add the next version of an agreement (flushed but not committed)"""

    if not content:
        raise HTTPException(status_code=400, detail="version content is required")

    query = select(func.max(DBAgreementVersion.version_number)).where(DBAgreementVersion.agreement_id == agreement_id)
    result = await db.execute(query)
    latest_version_number = result.scalar_one_or_none() or 0

    version = DBAgreementVersion(agreement_id=agreement_id, version_number=latest_version_number + 1, content=content, change_note=change_note)
    db.add(version)
    await db.flush()
    logger.info(f"created agreement version: agreement_id={agreement_id} version_number={version.version_number}")
    return version


def update_agreement_status(agreement: DBAgreement, status: AgreementStatus) -> None:
    """transition an agreement to a new status in-place, enforcing the allowed transitions"""

    if agreement.status == status:
        return
    if status not in ALLOWED_STATUS_TRANSITIONS.get(agreement.status, set()):
        raise HTTPException(status_code=400, detail=f"invalid status transition: {agreement.status.value} -> {status.value}")
    logger.info(f"agreement status change: agreement_id={agreement.id} {agreement.status.value} -> {status.value}")
    agreement.status = status
