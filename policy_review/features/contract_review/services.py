import logging

from typing import Any, Iterable, Mapping, Optional, Sequence, Union
from uuid import UUID

from fastapi import HTTPException
from openai import OpenAIError
from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from policy_review.enums import AgreementStatus, ProposalDecision
from policy_review.features.agreements.schemas import AgreementVersion
from policy_review.features.agreements.services import create_version, get_agreement, get_original_version, update_agreement_status
from policy_review.features.contract_review import generation
from policy_review.features.contract_review.redline import DecisionStore, build_change_note, build_proposal_id, compute_final_draft
from policy_review.features.contract_review.schemas import AppliedReview, DecisionMap, DecisionResponse, Proposal, ProposalCandidate, ProposalInput, ProposalRecord, RedlinePreviewRequest, RedlinePreviewResponse, ReviewState, ReviewStateResponse
from policy_review.features.policies.services import list_active_policies
from policy_review.models import Agreement as DBAgreement


logger = logging.getLogger(__name__)

ProposalLike = Union[Proposal, ProposalInput, ProposalRecord]


def normalize_proposal_records(agreement_id: object, records: Iterable[Union[ProposalRecord, Mapping[str, Any]]]) -> list[Proposal]:
    """fill in missing ids (by array index) and decisions (pending) for loaded proposal records"""

    proposals: list[Proposal] = []
    for index, record in enumerate(records):
        if not isinstance(record, ProposalRecord):
            try:
                record = ProposalRecord.model_validate(record)
            except ValidationError:
                logger.warning(f"skipping malformed proposal record: agreement_id={agreement_id} index={index}", exc_info=True)
                continue
        proposals.append(Proposal(
            id=record.id or build_proposal_id(agreement_id, index, record.original_text, record.proposed_text),
            original_text=record.original_text,
            proposed_text=record.proposed_text,
            rationale=record.rationale,
            decision=record.decision or ProposalDecision.PENDING,
        ))
    return proposals


def read_stored_proposals(agreement_id: object, review_data: Any) -> list[Proposal]:
    """extract the normalized proposal list from an agreement's stored review data"""

    if not isinstance(review_data, dict):
        return []
    records = review_data.get("proposals") or []
    if not isinstance(records, list):
        logger.warning(f"ignoring malformed review data: agreement_id={agreement_id}")
        return []
    return normalize_proposal_records(agreement_id, records)


def assign_proposal_ids(agreement_id: object, candidates: Sequence[ProposalCandidate], decisions: Optional[DecisionStore] = None) -> list[Proposal]:
    """turn fresh review candidates into proposals, carrying over decisions for ids seen before"""

    proposals: list[Proposal] = []
    for index, candidate in enumerate(candidates):
        proposal_id = build_proposal_id(agreement_id, index, candidate.original_text, candidate.proposed_text)
        proposals.append(Proposal(
            id=proposal_id,
            original_text=candidate.original_text,
            proposed_text=candidate.proposed_text,
            rationale=candidate.rationale,
            decision=decisions.get(proposal_id) if decisions else ProposalDecision.PENDING,
        ))
    return proposals


def serialize_review_data(proposals: Iterable[Proposal]) -> dict:
    """build the JSON document stored in the agreement's review data column"""

    return {"proposals": [proposal.model_dump(mode="json", by_alias=True) for proposal in proposals]}


async def save_review_state(db: AsyncSession, agreement_id: UUID, proposals: Sequence[ProposalLike]) -> list[Proposal]:
    """validate a client proposal list and persist it, merging decisions with the stored review"""

    for index, proposal in enumerate(proposals):
        if not proposal.original_text or not proposal.proposed_text:
            raise HTTPException(status_code=400, detail=f"invalid proposal payload: proposal at index={index} requires original and proposed text")

    return await write_review_state(db, agreement_id, proposals)


async def write_review_state(db: AsyncSession, agreement_id: UUID, proposals: Sequence[ProposalLike]) -> list[Proposal]:
    """merge decisions with the stored review and write the proposal list back as-is"""

    agreement = await get_agreement(db, agreement_id)

    # explicit incoming decisions win, then previously stored decisions, then pending
    existing = {proposal.id: proposal for proposal in read_stored_proposals(agreement.id, agreement.review_data)}
    merged: list[Proposal] = []
    for index, proposal in enumerate(proposals):
        proposal_id = proposal.id or build_proposal_id(agreement.id, index, proposal.original_text, proposal.proposed_text)
        previous = existing.get(proposal_id)
        decision = proposal.decision or (previous.decision if previous else None) or ProposalDecision.PENDING
        merged.append(Proposal(
            id=proposal_id,
            original_text=proposal.original_text,
            proposed_text=proposal.proposed_text,
            rationale=proposal.rationale,
            decision=decision,
        ))

    agreement.review_data = serialize_review_data(merged)
    await db.commit()
    logger.info(f"saved review state: agreement_id={agreement.id} proposals={len(merged)}")
    return merged


async def load_review_state(db: AsyncSession, agreement_id: UUID) -> ReviewState:
    """load the original draft and the stored (normalized) proposals for an agreement"""

    agreement = await get_agreement(db, agreement_id)
    original = await get_original_version(db, agreement.id)
    if not original:
        raise HTTPException(status_code=404, detail=f"original draft not found for agreement_id={agreement.id}")

    return ReviewState(
        agreement_id=agreement.id,
        content=original.content,
        proposals=read_stored_proposals(agreement.id, agreement.review_data),
        review_data_exists=agreement.review_data is not None,
        review_generation=agreement.review_generation or 0,
        type=agreement.type,
        counterparty=agreement.counterparty,
    )


def build_review_view(state: ReviewState) -> ReviewStateResponse:
    """attach the derived redline (segments, unmatched proposals, draft preview) to a review state"""

    decisions = DecisionStore.from_proposals(state.proposals).as_dict()
    draft = compute_final_draft(state.content, state.proposals, decisions)
    return ReviewStateResponse(
        **dict(state),
        decisions=decisions,
        segments=draft.segments,
        unmatched_proposals=draft.unmatched_proposals,
        preview_content=draft.final_content,
        accepted_count=draft.accepted_count,
    )


async def record_decision(db: AsyncSession, agreement_id: UUID, proposal_id: str, decision: ProposalDecision) -> DecisionResponse:
    """record a reviewer decision for one proposal and persist the review state when it changed"""

    state = await load_review_state(db, agreement_id)
    if not any(proposal.id == proposal_id for proposal in state.proposals):
        raise HTTPException(status_code=404, detail=f"proposal_id={proposal_id} not found")

    store = DecisionStore.from_proposals(state.proposals)
    changed = store.set(proposal_id, decision)
    persisted = False

    if changed:
        # stored records are written back unchecked; a failed write keeps the in-memory decision
        try:
            await write_review_state(db, state.agreement_id, store.apply(state.proposals))
            persisted = True
        except Exception:
            logger.error(f"failed to persist decision: agreement_id={state.agreement_id} proposal_id={proposal_id}", exc_info=True)
            await db.rollback()
        logger.info(f"recorded decision: agreement_id={state.agreement_id} proposal_id={proposal_id} decision={store.get(proposal_id).value}")

    return DecisionResponse(
        proposal_id=proposal_id,
        decision=store.get(proposal_id),
        changed=changed,
        persisted=persisted,
        decisions=store.as_dict(),
    )


async def apply_accepted_proposals(db: AsyncSession, agreement_id: UUID, decisions: Optional[DecisionMap] = None, change_note: Optional[str] = None, mark_approved: bool = True) -> AppliedReview:
    """apply the accepted proposals to the original draft and store the result as a new version"""

    agreement = await get_agreement(db, agreement_id)
    original = await get_original_version(db, agreement.id)
    if not original or not original.content:
        raise HTTPException(status_code=400, detail="unable to locate the original draft for this agreement")

    proposals = read_stored_proposals(agreement.id, agreement.review_data)
    if not proposals:
        raise HTTPException(status_code=400, detail="no proposals available to apply")

    # client decisions override stored ones; ids outside the stored review are ignored
    overrides = dict(decisions or {})
    applied_decisions = {proposal.id: overrides.get(proposal.id) or proposal.decision for proposal in proposals}
    draft = compute_final_draft(original.content, proposals, applied_decisions)
    if draft.accepted_count == 0:
        raise HTTPException(status_code=400, detail="no accepted proposals to apply")

    summary = change_note if change_note is not None else build_change_note(draft.accepted_count)
    version = await create_version(db, agreement.id, draft.final_content, summary)
    if mark_approved:
        update_agreement_status(agreement, AgreementStatus.APPROVED)

    # the review is complete so the stored proposals are cleared
    agreement.review_data = None
    await db.commit()
    await db.refresh(version)
    logger.info(f"applied policy review: agreement_id={agreement.id} version_number={version.version_number} accepted={draft.accepted_count}")

    return AppliedReview(
        agreement_id=agreement.id,
        version=AgreementVersion.model_validate(version),
        final_content=draft.final_content,
        accepted_count=draft.accepted_count,
        change_note=summary,
    )


async def start_review(db: AsyncSession, agreement_id: UUID, excluded_policy_ids: Sequence[UUID] = ()) -> ReviewState:
    """run a policy review of the original draft and store the resulting proposals"""

    agreement = await get_agreement(db, agreement_id)
    original = await get_original_version(db, agreement.id)
    if not original:
        raise HTTPException(status_code=404, detail=f"original draft not found for agreement_id={agreement.id}")

    # claim a new review generation so responses from superseded reviews can be discarded
    result = await db.execute(
        update(DBAgreement)
        .where(DBAgreement.id == agreement.id)
        .values(review_generation=DBAgreement.review_generation + 1)
        .returning(DBAgreement.review_generation)
    )
    review_generation = result.scalar_one()
    await db.commit()

    policies = await list_active_policies(db, excluded_policy_ids)
    try:
        candidates = await generation.generate_review_proposals(agreement.type, original.content, [policy.description for policy in policies])
    except (OpenAIError, ValueError):
        logger.error(f"policy review failed: agreement_id={agreement.id}", exc_info=True)
        raise HTTPException(status_code=502, detail="policy review failed")

    await db.refresh(agreement)
    if agreement.review_generation != review_generation:
        logger.warning(f"discarding stale review response: agreement_id={agreement.id} generation={review_generation} current={agreement.review_generation}")
        raise HTTPException(status_code=409, detail="a newer review was started for this agreement")

    prior_decisions = DecisionStore.from_proposals(read_stored_proposals(agreement.id, agreement.review_data))
    proposals = assign_proposal_ids(agreement.id, candidates, prior_decisions)
    await save_review_state(db, agreement.id, proposals)
    logger.info(f"policy review complete: agreement_id={agreement.id} proposals={len(proposals)}")
    return await load_review_state(db, agreement.id)


def preview_redline(request: RedlinePreviewRequest) -> RedlinePreviewResponse:
    """segment and reconstruct an ad-hoc document without touching storage"""

    proposals = normalize_proposal_records(request.agreement_id, request.proposals)
    draft = compute_final_draft(request.document, proposals, request.decisions)
    return RedlinePreviewResponse(
        final_content=draft.final_content,
        accepted_count=draft.accepted_count,
        segments=draft.segments,
        unmatched_proposals=draft.unmatched_proposals,
        proposals=proposals,
    )
