from uuid import UUID
from datetime import datetime
from typing import Optional

from pydantic import Field

from policy_review.common.schemas import ConfiguredBaseModel
from policy_review.enums import AgreementStatus, AgreementType


class AgreementVersion(ConfiguredBaseModel):
    id: UUID
    agreement_id: UUID
    version_number: int
    content: str
    change_note: Optional[str] = None
    created_at: datetime

class Agreement(ConfiguredBaseModel):
    id: UUID
    type: AgreementType
    counterparty: str
    status: AgreementStatus
    review_generation: int = 0
    created_at: datetime
    updated_at: datetime

class CreateAgreementRequest(ConfiguredBaseModel):
    type: AgreementType = AgreementType.MSA
    counterparty: str
    content: str = Field(max_length=200_000)

class CreateVersionRequest(ConfiguredBaseModel):
    content: str = Field(min_length=1, max_length=200_000)
    change_note: Optional[str] = Field(default=None, max_length=2000)

class UpdateAgreementStatusRequest(ConfiguredBaseModel):
    status: AgreementStatus
