import logging

import pytest

from policy_review.enums import ProposalDecision
from policy_review.features.contract_review.redline import (
    DecisionStore,
    build_change_note,
    build_proposal_id,
    build_whitespace_flexible_pattern,
    compute_final_draft,
    find_match,
    fnv1a_hash,
    normalize_snippet,
    reconstruct_draft,
    resolve_decision,
    segment_document,
)
from policy_review.features.contract_review.schemas import Proposal, ProposalSegment, TextSegment


def make_proposal(original_text: str, proposed_text: str, index: int = 0, decision: ProposalDecision = ProposalDecision.PENDING, agreement_id: str = "agreement-1") -> Proposal:
    return Proposal(
        id=build_proposal_id(agreement_id, index, original_text, proposed_text),
        original_text=original_text,
        proposed_text=proposed_text,
        rationale="policy minimum",
        decision=decision,
    )


class TestProposalIdentifier:

    def test_id_is_deterministic(self):
        first = build_proposal_id("agreement-1", 3, "Net 30 days", "Net 45 days")
        second = build_proposal_id("agreement-1", 3, "Net 30 days", "Net 45 days")
        assert first == second
        assert first.startswith("prop_")

    def test_id_ignores_whitespace_noise(self):
        assert build_proposal_id("a", 0, "Net  30\ndays", "Net 45") == build_proposal_id("a", 0, "Net 30 days", "Net 45")
        assert build_proposal_id("a", 0, "  Net 30 days\t", " Net 45 ") == build_proposal_id("a", 0, "Net 30 days", "Net 45")

    def test_id_depends_on_index(self):
        assert build_proposal_id("a", 0, "Net 30 days", "Net 45 days") != build_proposal_id("a", 1, "Net 30 days", "Net 45 days")

    def test_id_depends_on_agreement(self):
        assert build_proposal_id("a", 0, "Net 30 days", "Net 45 days") != build_proposal_id("b", 0, "Net 30 days", "Net 45 days")

    def test_id_ignores_text_past_snippet_limits(self):
        original = "x" * 200
        proposed = "y" * 80
        assert build_proposal_id("a", 0, original + " tail", proposed + " tail") == build_proposal_id("a", 0, original, proposed)
        assert build_proposal_id("a", 0, original[:-1] + "z", proposed) != build_proposal_id("a", 0, original, proposed)

    def test_id_treats_missing_text_as_empty(self):
        assert build_proposal_id("a", 0, None, None) == build_proposal_id("a", 0, "", "")

    def test_id_regression_values(self):
        assert build_proposal_id("agreement-1", 0, "Net 30 days", "Net 45 days") == "prop_520c447b"
        assert build_proposal_id("agreement-1", 1, "Net 30 days", "Net 45 days") == "prop_bed00ab4"
        assert build_proposal_id("", 0, "", "") == "prop_1183267"

    def test_id_hashes_utf16_code_units(self):
        assert build_proposal_id("agreement-1", 0, "Confidentiality \U0001F512 survives 1 year", "2 years") == "prop_7bec5f49"

    def test_hash_of_empty_string_is_offset_basis(self):
        assert fnv1a_hash("") == "811c9dc5"

    def test_normalize_snippet(self):
        assert normalize_snippet("  a \n\t b  ", 10) == "a b"
        assert normalize_snippet("abcdef", 3) == "abc"


class TestFlexibleTextLocator:

    def test_exact_match_takes_priority(self):
        match = find_match("A cat sat", "cat sat")
        assert match is not None
        assert match.index == 2
        assert match.matched_text == "cat sat"

    def test_whitespace_flexible_match_returns_source_text(self):
        match = find_match("A cat   sat\non the mat", "cat sat")
        assert match is not None
        assert match.index == 2
        assert match.matched_text == "cat   sat"

    def test_flexible_match_spans_newlines_in_the_excerpt(self):
        match = find_match("Pay within\n45 days of invoice", "within 45\n days")
        assert match is not None
        assert match.matched_text == "within\n45 days"

    def test_flexible_match_is_case_insensitive(self):
        match = find_match("Payment Terms apply", "payment  terms")
        assert match is not None
        assert match.index == 0
        assert match.matched_text == "Payment Terms"

    def test_no_match(self):
        assert find_match("hello world", "goodbye", 0) is None

    def test_empty_excerpt_never_matches(self):
        assert find_match("hello world", "") is None
        assert find_match("hello world", "   ") is None

    def test_search_starts_at_from_index(self):
        text = "net 30 days. net 30 days."
        match = find_match(text, "net 30 days", 1)
        assert match is not None
        assert match.index == 13

    def test_negative_from_index_is_clamped(self):
        match = find_match("A cat sat", "cat sat", -5)
        assert match is not None
        assert match.index == 2

    def test_flexible_match_reports_absolute_offsets(self):
        text = "cat sat. A cat   sat"
        match = find_match(text, "cat sat", 3)
        assert match is not None
        assert match.index == 11
        assert match.matched_text == "cat   sat"

    def test_regex_metacharacters_are_literal(self):
        text = "Fees ($250,000) apply (per year)."
        match = find_match(text, "($250,000)   apply")
        assert match is not None
        assert match.matched_text == "($250,000) apply"
        assert find_match("aXb", "a.b") is None

    def test_pattern_is_none_for_blank_excerpt(self):
        assert build_whitespace_flexible_pattern(" \n ") is None


class TestDocumentSegmenter:

    @pytest.mark.parametrize("document", ["", "Confidentiality survives 1 year.", "  leading and trailing  \n"])
    def test_no_proposals_yields_single_text_segment(self, document):
        result = segment_document(document, [])
        if document:
            assert result.segments == [TextSegment(content=document)]
        else:
            assert result.segments == []
        assert result.unmatched_proposals == []

    def test_end_to_end_segmentation(self):
        proposal = make_proposal("1 year", "2 years")
        result = segment_document("Confidentiality survives 1 year.", [proposal])

        assert len(result.segments) == 3
        assert result.segments[0] == TextSegment(content="Confidentiality survives ")
        assert isinstance(result.segments[1], ProposalSegment)
        assert result.segments[1].proposal.id == proposal.id
        assert result.segments[1].matched_text == "1 year"
        assert result.segments[2] == TextSegment(content=".")
        assert result.unmatched_proposals == []

    def test_segments_follow_document_order(self):
        document = "Alpha one. Beta two. Gamma three."
        gamma = make_proposal("Gamma three", "Gamma 3", index=0)
        alpha = make_proposal("Alpha one", "Alpha 1", index=1)
        result = segment_document(document, [gamma, alpha])

        kinds = [segment.type for segment in result.segments]
        assert kinds == ["proposal", "text", "proposal", "text"]
        assert result.segments[0].proposal.id == alpha.id
        assert result.segments[2].proposal.id == gamma.id
        assert "".join(getattr(segment, "content", None) or segment.matched_text for segment in result.segments) == document

    def test_unmatched_proposals_never_appear_in_segments(self):
        missing = make_proposal("Governing law is Delaware", "Governing law is Florida", decision=ProposalDecision.ACCEPTED)
        result = segment_document("Confidentiality survives 1 year.", [missing])

        assert result.unmatched_proposals == [missing]
        assert all(not isinstance(segment, ProposalSegment) for segment in result.segments)
        assert result.segments == [TextSegment(content="Confidentiality survives 1 year.")]

    def test_overlapping_proposal_is_unmatched(self):
        document = "Payment is due Net 30 days from invoice."
        first = make_proposal("due Net 30 days", "due Net 45 days", index=0)
        overlapping = make_proposal("30 days from invoice", "45 days from invoice", index=1)
        result = segment_document(document, [first, overlapping])

        assert [segment.proposal.id for segment in result.segments if isinstance(segment, ProposalSegment)] == [first.id]
        assert result.unmatched_proposals == [overlapping]

    def test_whitespace_variant_excerpt_is_placed(self):
        document = "The term is\ntwelve   months."
        proposal = make_proposal("twelve months", "twenty-four months")
        result = segment_document(document, [proposal])

        assert result.unmatched_proposals == []
        assert result.segments[1].matched_text == "twelve   months"

    def test_empty_document_reports_all_proposals_unmatched(self):
        proposal = make_proposal("1 year", "2 years")
        result = segment_document("", [proposal])
        assert result.segments == []
        assert result.unmatched_proposals == [proposal]


class TestDecisionStore:

    def test_set_reports_changes(self):
        store = DecisionStore()
        assert store.set("prop_1", ProposalDecision.ACCEPTED) is True
        assert store.set("prop_1", ProposalDecision.ACCEPTED) is False
        assert store.set("prop_1", "rejected") is True
        assert store.get("prop_1") == ProposalDecision.REJECTED

    def test_unknown_ids_are_pending(self):
        assert DecisionStore().get("prop_missing") == ProposalDecision.PENDING

    def test_seed_does_not_reset_known_decisions(self):
        proposal = make_proposal("1 year", "2 years")
        store = DecisionStore({proposal.id: ProposalDecision.ACCEPTED})
        store.seed([proposal])
        assert store.get(proposal.id) == ProposalDecision.ACCEPTED

        store.seed([proposal.model_copy(update={"decision": ProposalDecision.REJECTED})])
        assert store.get(proposal.id) == ProposalDecision.REJECTED

    def test_apply_returns_copies_with_stored_decisions(self):
        first = make_proposal("1 year", "2 years", index=0)
        second = make_proposal("Net 30", "Net 45", index=1)
        store = DecisionStore.from_proposals([first, second])
        store.set(second.id, ProposalDecision.ACCEPTED)

        applied = store.apply([first, second])
        assert [proposal.decision for proposal in applied] == [ProposalDecision.PENDING, ProposalDecision.ACCEPTED]
        assert first.decision == ProposalDecision.PENDING
        assert store.as_dict() == {first.id: ProposalDecision.PENDING, second.id: ProposalDecision.ACCEPTED}
        assert len(store) == 2
        assert first.id in store

    def test_invalid_decision_is_rejected(self):
        with pytest.raises(ValueError):
            DecisionStore().set("prop_1", "maybe")


class TestDraftReconstructor:

    def test_acceptance_is_applied(self):
        proposal = make_proposal("45 days", "30 days")
        draft = compute_final_draft("Pay within 45 days", [proposal], {proposal.id: ProposalDecision.ACCEPTED})
        assert draft.final_content == "Pay within 30 days"
        assert draft.accepted_count == 1

    @pytest.mark.parametrize("decision", [ProposalDecision.PENDING, ProposalDecision.REJECTED])
    def test_end_to_end_without_acceptance_reproduces_original(self, decision):
        document = "Confidentiality survives 1 year."
        proposal = make_proposal("1 year", "2 years")
        draft = compute_final_draft(document, [proposal], {proposal.id: decision})
        assert draft.final_content == document
        assert draft.accepted_count == 0

    def test_end_to_end_with_acceptance(self):
        proposal = make_proposal("1 year", "2 years")
        draft = compute_final_draft("Confidentiality survives 1 year.", [proposal], {proposal.id: ProposalDecision.ACCEPTED})
        assert draft.final_content == "Confidentiality survives 2 years."

    def test_rejection_keeps_source_whitespace(self):
        document = "The term is\ntwelve   months."
        proposal = make_proposal("twelve months", "twenty-four months")
        segmentation = segment_document(document, [proposal])

        assert reconstruct_draft(segmentation.segments, {proposal.id: ProposalDecision.REJECTED}).final_content == document
        assert reconstruct_draft(segmentation.segments, {proposal.id: ProposalDecision.ACCEPTED}).final_content == "The term is\ntwenty-four months."

    def test_decisions_default_to_the_proposals_own(self):
        proposal = make_proposal("45 days", "30 days", decision=ProposalDecision.ACCEPTED)
        draft = compute_final_draft("Pay within 45 days", [proposal])
        assert draft.final_content == "Pay within 30 days"

    def test_decision_map_takes_priority(self):
        proposal = make_proposal("45 days", "30 days", decision=ProposalDecision.ACCEPTED)
        assert resolve_decision(proposal, {proposal.id: ProposalDecision.REJECTED}) == ProposalDecision.REJECTED
        assert resolve_decision(proposal, {}) == ProposalDecision.ACCEPTED

    def test_accepted_unmatched_proposal_is_dropped_with_warning(self, caplog):
        matched = make_proposal("1 year", "2 years", index=0)
        missing = make_proposal("Governing law is Delaware", "Governing law is Florida", index=1)
        decisions = {matched.id: ProposalDecision.ACCEPTED, missing.id: ProposalDecision.ACCEPTED}

        with caplog.at_level(logging.WARNING, logger="policy_review.features.contract_review.redline"):
            draft = compute_final_draft("Confidentiality survives 1 year.", [matched, missing], decisions)

        assert draft.final_content == "Confidentiality survives 2 years."
        assert draft.unmatched_proposals == [missing]
        assert missing.id in caplog.text

    def test_unknown_segment_type_raises(self):
        with pytest.raises(TypeError):
            reconstruct_draft(["not a segment"], {})

    @pytest.mark.parametrize(("accepted_count", "expected"), [
        (1, "1 change applied from policy review."),
        (3, "3 changes applied from policy review."),
    ])
    def test_change_note(self, accepted_count, expected):
        assert build_change_note(accepted_count) == expected
