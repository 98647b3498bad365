from uuid import UUID
from datetime import datetime

from policy_review.common.schemas import ConfiguredBaseModel


class PolicyRule(ConfiguredBaseModel):
    id: UUID
    description: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
