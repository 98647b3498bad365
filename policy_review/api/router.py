from fastapi import APIRouter

from policy_review.api.system import router as system_router
from policy_review.features.policies.api import router as policies_router
from policy_review.features.agreements.api import router as agreements_router
from policy_review.features.contract_review.api import router as contract_review_router


router = APIRouter()
router.include_router(system_router)
router.include_router(policies_router)
router.include_router(agreements_router)
router.include_router(contract_review_router)
