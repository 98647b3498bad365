from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from policy_review.api.deps import get_db
from policy_review.features.agreements.schemas import Agreement, AgreementVersion, CreateAgreementRequest, CreateVersionRequest, UpdateAgreementStatusRequest
from policy_review.features.agreements.services import create_incoming_agreement, create_version, get_agreement, list_versions, update_agreement_status


router = APIRouter()


@router.post("/agreements", response_model=Agreement, status_code=201, tags=["agreements"])
async def create_agreement(request: CreateAgreementRequest, db: AsyncSession = Depends(get_db)) -> Agreement:
    """create an incoming agreement for review with its original draft as version 1"""

    agreement = await create_incoming_agreement(db, request.type, request.counterparty, request.content)
    return Agreement.model_validate(agreement)


@router.get("/agreements/{agreement_id}", response_model=Agreement, tags=["agreements"])
async def get_agreement_by_id(agreement_id: UUID, db: AsyncSession = Depends(get_db)) -> Agreement:
    """get a single agreement by ID"""

    agreement = await get_agreement(db, agreement_id)
    return Agreement.model_validate(agreement)


@router.get("/agreements/{agreement_id}/versions", response_model=list[AgreementVersion], tags=["agreements"])
async def get_agreement_versions(agreement_id: UUID, db: AsyncSession = Depends(get_db)) -> list[AgreementVersion]:
    """list all versions of an agreement"""

    await get_agreement(db, agreement_id)
    versions = await list_versions(db, agreement_id)
    return [AgreementVersion.model_validate(version) for version in versions]


@router.post("/agreements/{agreement_id}/versions", response_model=AgreementVersion, status_code=201, tags=["agreements"])
async def add_agreement_version(agreement_id: UUID, request: CreateVersionRequest, db: AsyncSession = Depends(get_db)) -> AgreementVersion:
    """save an edited draft as the next version of an agreement"""

    await get_agreement(db, agreement_id)
    version = await create_version(db, agreement_id, request.content, request.change_note)
    await db.commit()
    await db.refresh(version)
    return AgreementVersion.model_validate(version)


@router.put("/agreements/{agreement_id}/status", response_model=Agreement, tags=["agreements"])
async def set_agreement_status(agreement_id: UUID, request: UpdateAgreementStatusRequest, db: AsyncSession = Depends(get_db)) -> Agreement:
    """move an agreement between review and approved"""

    agreement = await get_agreement(db, agreement_id)
    update_agreement_status(agreement, request.status)
    await db.commit()
    await db.refresh(agreement)
    return Agreement.model_validate(agreement)
