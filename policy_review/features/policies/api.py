from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from policy_review.api.deps import get_db
from policy_review.features.policies.schemas import PolicyRule
from policy_review.features.policies.services import list_active_policies


router = APIRouter()


@router.get("/policies", response_model=list[PolicyRule], tags=["policies"])
async def get_policies(db: AsyncSession = Depends(get_db)) -> list[PolicyRule]:
    """get all active policy rules used to review incoming agreements"""

    policies = await list_active_policies(db)
    return [PolicyRule.model_validate(policy) for policy in policies]
