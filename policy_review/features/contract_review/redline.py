"""Proposal matching and redline reconstruction.

Proposals are AI-suggested substitutions (original excerpt -> replacement) over an
immutable original draft. This module identifies proposals with stable content ids,
locates their excerpts in the draft (tolerating whitespace drift in LLM output),
splits the draft into text/proposal segments, tracks reviewer decisions, and rebuilds
the final draft from the accepted changes. Everything here is pure and synchronous.
"""

import re
import logging

from typing import Iterable, Mapping, Optional, Sequence, Union

from policy_review.enums import ProposalDecision
from policy_review.features.contract_review.schemas import ComputedDraft, DecisionMap, FinalDraft, Proposal, ProposalRecord, ProposalSegment, Segment, SegmentationResult, TextMatch, TextSegment


logger = logging.getLogger(__name__)

ORIGINAL_SNIPPET_LIMIT = 200
PROPOSED_SNIPPET_LIMIT = 80

FNV_OFFSET_BASIS = 0x811C9DC5
UINT32_MASK = 0xFFFFFFFF

WHITESPACE_RUN = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# proposal identifier
# ---------------------------------------------------------------------------

def _utf16_units(value: str) -> list[int]:
    """split a string into UTF-16 code units (non-BMP characters become surrogate pairs)"""

    encoded = value.encode("utf-16-le", errors="surrogatepass")
    return [int.from_bytes(encoded[i:i + 2], "little") for i in range(0, len(encoded), 2)]


def _utf16_prefix(value: str, limit: int) -> str:
    """truncate a string to at most `limit` UTF-16 code units"""

    encoded = value.encode("utf-16-le", errors="surrogatepass")
    return encoded[:limit * 2].decode("utf-16-le", errors="surrogatepass")


def normalize_snippet(value: str, limit: int) -> str:
    """collapse whitespace runs to single spaces, trim, and truncate"""

    return _utf16_prefix(WHITESPACE_RUN.sub(" ", value).strip(), limit)


def fnv1a_hash(value: str) -> str:
    """32-bit FNV-1a style hash rendered as unpadded lowercase hex"""

    hash_value = FNV_OFFSET_BASIS
    for unit in _utf16_units(value):
        hash_value ^= unit
        hash_value = (
            hash_value
            + (hash_value << 1)
            + (hash_value << 4)
            + (hash_value << 7)
            + (hash_value << 8)
            + (hash_value << 24)
        ) & UINT32_MASK
    return format(hash_value, "x")


def build_proposal_id(agreement_id: object, index: int, original_text: Optional[str], proposed_text: Optional[str]) -> str:
    """derive a stable, content-addressed proposal id

    Ids ignore whitespace noise and anything past the snippet limits, and include the
    proposal's position so duplicate clauses at different indices stay distinct.
    """

    original = normalize_snippet("" if original_text is None else str(original_text), ORIGINAL_SNIPPET_LIMIT)
    proposed = normalize_snippet("" if proposed_text is None else str(proposed_text), PROPOSED_SNIPPET_LIMIT)
    agreement = "" if agreement_id is None else str(agreement_id)
    payload = f"{agreement}:{index}:{original}:{proposed}"
    return f"prop_{fnv1a_hash(payload)}"


# ---------------------------------------------------------------------------
# flexible text locator
# ---------------------------------------------------------------------------

def build_whitespace_flexible_pattern(excerpt: str) -> Optional[re.Pattern]:
    """compile a case-insensitive pattern matching the excerpt's tokens separated by any whitespace"""

    normalized = WHITESPACE_RUN.sub(" ", excerpt).strip()
    if not normalized:
        return None
    tokens = [re.escape(token) for token in normalized.split(" ")]
    return re.compile(r"\s+".join(tokens), re.IGNORECASE)


def find_match(full_text: str, excerpt: str, from_index: int = 0) -> Optional[TextMatch]:
    """locate an excerpt at or after `from_index`: exact match first, whitespace-flexible match second"""

    if not excerpt:
        return None
    from_index = max(from_index, 0)

    exact_index = full_text.find(excerpt, from_index)
    if exact_index != -1:
        return TextMatch(index=exact_index, matched_text=excerpt)

    pattern = build_whitespace_flexible_pattern(excerpt)
    if pattern is None:
        return None

    # search from the cursor position but report absolute offsets into the full text
    match = pattern.search(full_text, from_index)
    if match is None:
        return None
    return TextMatch(index=match.start(), matched_text=match.group(0))


# ---------------------------------------------------------------------------
# document segmenter
# ---------------------------------------------------------------------------

def segment_document(original_document: str, proposals: Sequence[Proposal]) -> SegmentationResult:
    """partition the document into ordered, non-overlapping text and proposal segments"""

    if not original_document:
        return SegmentationResult(segments=[], unmatched_proposals=list(proposals))

    if not proposals:
        return SegmentationResult(segments=[TextSegment(content=original_document)], unmatched_proposals=[])

    # order by first exact occurrence as a left-to-right hint (absent excerpts sort first)
    ordered = sorted(proposals, key=lambda proposal: original_document.find(proposal.original_text))

    segments: list[Segment] = []
    unmatched: list[Proposal] = []
    last_index = 0

    for proposal in ordered:
        match = find_match(original_document, proposal.original_text, last_index)
        if match is None:
            logger.debug(f"proposal could not be placed: id={proposal.id}")
            unmatched.append(proposal)
            continue

        if match.index > last_index:
            segments.append(TextSegment(content=original_document[last_index:match.index]))
        segments.append(ProposalSegment(proposal=proposal, matched_text=match.matched_text))
        last_index = match.index + len(match.matched_text)

    if last_index < len(original_document):
        segments.append(TextSegment(content=original_document[last_index:]))

    return SegmentationResult(segments=segments, unmatched_proposals=unmatched)


# ---------------------------------------------------------------------------
# decision store
# ---------------------------------------------------------------------------

class DecisionStore:
    """map of proposal id -> reviewer decision with idempotent upserts"""

    def __init__(self, decisions: Optional[Mapping[str, Union[ProposalDecision, str]]] = None):
        self._decisions: dict[str, ProposalDecision] = {}
        for proposal_id, decision in (decisions or {}).items():
            self._decisions[proposal_id] = ProposalDecision(decision)

    @classmethod
    def from_proposals(cls, proposals: Iterable[Union[Proposal, ProposalRecord]]) -> "DecisionStore":
        store = cls()
        store.seed(proposals)
        return store

    def __contains__(self, proposal_id: str) -> bool:
        return proposal_id in self._decisions

    def __len__(self) -> int:
        return len(self._decisions)

    def get(self, proposal_id: str) -> ProposalDecision:
        return self._decisions.get(proposal_id, ProposalDecision.PENDING)

    def set(self, proposal_id: str, decision: Union[ProposalDecision, str]) -> bool:
        """record a decision, returning whether the stored state changed"""

        decision = ProposalDecision(decision)
        if self._decisions.get(proposal_id) == decision:
            return False
        self._decisions[proposal_id] = decision
        return True

    def seed(self, proposals: Iterable[Union[Proposal, ProposalRecord]]) -> None:
        """seed decisions from (re)loaded proposals without resetting known decisions to pending"""

        for proposal in proposals:
            if not proposal.id:
                continue
            decision = proposal.decision
            if decision is None or decision == ProposalDecision.PENDING:
                self._decisions.setdefault(proposal.id, ProposalDecision.PENDING)
            else:
                self._decisions[proposal.id] = decision

    def apply(self, proposals: Iterable[Proposal]) -> list[Proposal]:
        """return copies of the proposals carrying the stored decisions"""

        return [proposal.model_copy(update={"decision": self.get(proposal.id)}) for proposal in proposals]

    def as_dict(self) -> DecisionMap:
        return dict(self._decisions)


# ---------------------------------------------------------------------------
# draft reconstructor
# ---------------------------------------------------------------------------

def resolve_decision(proposal: Proposal, decisions: Mapping[str, Union[ProposalDecision, str]]) -> ProposalDecision:
    """decision for a proposal: decision map first, then the proposal's own decision, then pending"""

    decision = decisions.get(proposal.id) or proposal.decision or ProposalDecision.PENDING
    return ProposalDecision(decision)


def count_accepted(decisions: Mapping[str, Union[ProposalDecision, str]]) -> int:
    return sum(1 for decision in decisions.values() if decision is not None and ProposalDecision(decision) == ProposalDecision.ACCEPTED)


def reconstruct_draft(segments: Sequence[Segment], decisions: Mapping[str, Union[ProposalDecision, str]]) -> FinalDraft:
    """rebuild the document from segments, substituting proposed text only for accepted proposals"""

    parts: list[str] = []
    for segment in segments:
        match segment:
            case TextSegment():
                parts.append(segment.content)
            case ProposalSegment():
                if resolve_decision(segment.proposal, decisions) == ProposalDecision.ACCEPTED:
                    parts.append(segment.proposal.proposed_text)
                else:
                    parts.append(segment.matched_text)
            case _:
                raise TypeError(f"unsupported segment type: {type(segment).__name__}")

    return FinalDraft(final_content="".join(parts), accepted_count=count_accepted(decisions))


def compute_final_draft(original_draft: str, proposals: Sequence[Proposal], decisions: Optional[Mapping[str, Union[ProposalDecision, str]]] = None) -> ComputedDraft:
    """segment the draft and reconstruct it under the given (or the proposals' own) decisions"""

    if decisions is None:
        decision_map: DecisionMap = {proposal.id: proposal.decision or ProposalDecision.PENDING for proposal in proposals}
    else:
        decision_map = {proposal_id: ProposalDecision(decision) for proposal_id, decision in decisions.items() if decision is not None}

    segmentation = segment_document(original_draft, proposals)
    draft = reconstruct_draft(segmentation.segments, decision_map)

    # accepted changes that could not be placed are dropped from the final draft
    dropped = [proposal.id for proposal in segmentation.unmatched_proposals if resolve_decision(proposal, decision_map) == ProposalDecision.ACCEPTED]
    if dropped:
        logger.warning(f"accepted proposals could not be located in the draft and were not applied: {dropped}")

    return ComputedDraft(
        final_content=draft.final_content,
        accepted_count=draft.accepted_count,
        segments=segmentation.segments,
        unmatched_proposals=segmentation.unmatched_proposals,
    )


def build_change_note(accepted_count: int) -> str:
    """human-readable audit note for a version produced from a policy review"""

    return f"{accepted_count} change{'' if accepted_count == 1 else 's'} applied from policy review."
