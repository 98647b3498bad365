from uuid import UUID
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from policy_review.common.schemas import ConfiguredBaseModel
from policy_review.enums import AgreementType, ProposalDecision
from policy_review.features.agreements.schemas import AgreementVersion


DecisionMap = dict[str, ProposalDecision]


class ProposalCandidate(BaseModel):
    """a single substitution as produced by the review model"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    original_text: str
    proposed_text: str
    rationale: str

class ReviewProposals(BaseModel):
    """structured output format for the review model"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    proposals: list[ProposalCandidate]


class ProposalRecord(ConfiguredBaseModel):
    """a persisted proposal record which may be missing its id and decision"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    original_text: str = ""
    proposed_text: str = ""
    rationale: str = ""
    decision: Optional[ProposalDecision] = None

class ProposalInput(ConfiguredBaseModel):
    """a proposal submitted by a client for persistence"""

    id: Optional[str] = Field(default=None, min_length=1)
    original_text: str = Field(min_length=1)
    proposed_text: str = Field(min_length=1)
    rationale: str = Field(min_length=1)
    decision: Optional[ProposalDecision] = None

class Proposal(ConfiguredBaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    original_text: str
    proposed_text: str
    rationale: str = ""
    decision: ProposalDecision = ProposalDecision.PENDING


class TextMatch(ConfiguredBaseModel):
    index: int
    matched_text: str

class TextSegment(ConfiguredBaseModel):
    type: Literal["text"] = "text"
    content: str

class ProposalSegment(ConfiguredBaseModel):
    type: Literal["proposal"] = "proposal"
    proposal: Proposal
    matched_text: str

Segment = Annotated[Union[TextSegment, ProposalSegment], Field(discriminator="type")]

class SegmentationResult(ConfiguredBaseModel):
    segments: list[Segment] = Field(default_factory=list)
    unmatched_proposals: list[Proposal] = Field(default_factory=list)

class FinalDraft(ConfiguredBaseModel):
    final_content: str
    accepted_count: int

class ComputedDraft(FinalDraft):
    segments: list[Segment] = Field(default_factory=list)
    unmatched_proposals: list[Proposal] = Field(default_factory=list)


class ReviewState(ConfiguredBaseModel):
    agreement_id: UUID
    content: str
    proposals: list[Proposal] = Field(default_factory=list)
    review_data_exists: bool
    review_generation: int = 0
    type: AgreementType
    counterparty: str

class ReviewStateResponse(ReviewState):
    # derived redline view of the stored review, recomputed on every read
    decisions: DecisionMap = Field(default_factory=dict)
    segments: list[Segment] = Field(default_factory=list)
    unmatched_proposals: list[Proposal] = Field(default_factory=list)
    preview_content: str
    accepted_count: int

class StartReviewRequest(ConfiguredBaseModel):
    excluded_policy_ids: list[UUID] = Field(default_factory=list)

class SaveReviewStateRequest(ConfiguredBaseModel):
    proposals: list[ProposalInput] = Field(default_factory=list)

class SaveReviewStateResponse(ConfiguredBaseModel):
    agreement_id: UUID
    proposals: list[Proposal]

class DecisionRequest(ConfiguredBaseModel):
    proposal_id: str
    decision: ProposalDecision

class DecisionResponse(ConfiguredBaseModel):
    proposal_id: str
    decision: ProposalDecision
    changed: bool
    persisted: bool
    decisions: DecisionMap = Field(default_factory=dict)

class ApplyReviewRequest(ConfiguredBaseModel):
    decisions: Optional[DecisionMap] = None
    change_note: Optional[str] = None
    mark_approved: bool = True

class AppliedReview(ConfiguredBaseModel):
    agreement_id: UUID
    version: AgreementVersion
    final_content: str
    accepted_count: int
    change_note: str

class RedlinePreviewRequest(ConfiguredBaseModel):
    agreement_id: str = "local"
    document: str
    proposals: list[ProposalRecord] = Field(default_factory=list)
    decisions: Optional[DecisionMap] = None

class RedlinePreviewResponse(ComputedDraft):
    proposals: list[Proposal] = Field(default_factory=list)
