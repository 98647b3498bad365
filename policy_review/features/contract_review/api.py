import logging

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from policy_review.api.deps import get_db
from policy_review.features.contract_review.schemas import AppliedReview, ApplyReviewRequest, DecisionRequest, DecisionResponse, RedlinePreviewRequest, RedlinePreviewResponse, ReviewStateResponse, SaveReviewStateRequest, SaveReviewStateResponse, StartReviewRequest
from policy_review.features.contract_review.services import apply_accepted_proposals, build_review_view, load_review_state, preview_redline, record_decision, save_review_state, start_review


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/agreements/{agreement_id}/review", response_model=ReviewStateResponse, tags=["contract_review"])
async def run_policy_review(agreement_id: UUID, request: StartReviewRequest, db: AsyncSession = Depends(get_db)) -> ReviewStateResponse:
    """run a policy review of the agreement's original draft and return the resulting redline"""

    state = await start_review(db, agreement_id, request.excluded_policy_ids)
    return build_review_view(state)


@router.get("/agreements/{agreement_id}/review", response_model=ReviewStateResponse, tags=["contract_review"])
async def get_review_state(agreement_id: UUID, db: AsyncSession = Depends(get_db)) -> ReviewStateResponse:
    """get the stored review state of an agreement along with its derived redline"""

    try:
        state = await load_review_state(db, agreement_id)
        return build_review_view(state)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("failed to load review state", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/agreements/{agreement_id}/review", response_model=SaveReviewStateResponse, tags=["contract_review"])
async def put_review_state(agreement_id: UUID, request: SaveReviewStateRequest, db: AsyncSession = Depends(get_db)) -> SaveReviewStateResponse:
    """replace the stored proposal list of an agreement"""

    try:
        proposals = await save_review_state(db, agreement_id, request.proposals)
        return SaveReviewStateResponse(agreement_id=agreement_id, proposals=proposals)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("failed to save review state", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/agreements/{agreement_id}/review/decisions", response_model=DecisionResponse, tags=["contract_review"])
async def post_review_decision(agreement_id: UUID, request: DecisionRequest, db: AsyncSession = Depends(get_db)) -> DecisionResponse:
    """accept or reject a single proposal"""

    return await record_decision(db, agreement_id, request.proposal_id, request.decision)


@router.post("/agreements/{agreement_id}/review/apply", response_model=AppliedReview, status_code=201, tags=["contract_review"])
async def apply_review(agreement_id: UUID, request: ApplyReviewRequest, db: AsyncSession = Depends(get_db)) -> AppliedReview:
    """apply the accepted proposals and save the result as the agreement's next version"""

    try:
        return await apply_accepted_proposals(db, agreement_id, decisions=request.decisions, change_note=request.change_note, mark_approved=request.mark_approved)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("failed to apply review", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/redline/preview", response_model=RedlinePreviewResponse, tags=["contract_review"])
def post_redline_preview(request: RedlinePreviewRequest) -> RedlinePreviewResponse:
    """segment a document against a set of proposals and reconstruct the draft without storing anything"""

    return preview_redline(request)
