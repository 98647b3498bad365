import logging

from openai import AsyncOpenAI
from openai.types.responses import ParsedResponse
from pydantic import ValidationError

from policy_review.core.config import settings
from policy_review.enums import AgreementType
from policy_review.features.contract_review.schemas import ProposalCandidate, ReviewProposals
from policy_review.prompts import PROMPT_CONTRACT_REVIEW
from policy_review.utils.common import count_tokens, string_sanitize, string_truncate


logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def parse_review_response(raw_text: str) -> list[ProposalCandidate]:
    """parse a raw JSON review payload into proposal candidates"""

    cleaned = string_sanitize(raw_text or "")
    if not cleaned:
        raise ValueError("empty review response")
    try:
        review = ReviewProposals.model_validate_json(cleaned)
    except ValidationError as e:
        raise ValueError(f"invalid review response format: {e.error_count()} validation errors") from e
    return review.proposals


def drop_unplaceable_candidates(candidates: list[ProposalCandidate]) -> list[ProposalCandidate]:
    """drop candidates without any excerpt text since they can never be located in the draft"""

    kept = [candidate for candidate in candidates if candidate.original_text.strip()]
    if len(kept) < len(candidates):
        logger.warning(f"dropped {len(candidates) - len(kept)} review proposals with empty original text")
    return kept


async def generate_review_proposals(agreement_type: AgreementType, incoming_draft: str, policies: list[str]) -> list[ProposalCandidate]:
    """ask the review model for proposed text substitutions bringing the draft in line with the policies"""

    draft = string_truncate(incoming_draft, max_tokens=settings.review_max_draft_tokens)
    policy_text = "\n".join(f"- {policy}" for policy in policies) if policies else "- (no active policies)"
    logger.info(f"requesting policy review: type={agreement_type.value} policies={len(policies)} draft_tokens={count_tokens(draft)}")

    openai = AsyncOpenAI(api_key=settings.openai_api_key)
    response: ParsedResponse = await openai.responses.parse(
        model=settings.openai_review_model,
        input=PROMPT_CONTRACT_REVIEW.format(
            agreement_type=agreement_type.value,
            policies=policy_text,
            incoming_draft=draft,
        ),
        text_format=ReviewProposals,
        temperature=settings.openai_review_temperature,
        timeout=settings.openai_request_timeout,
    )

    review: ReviewProposals | None = response.output_parsed
    if review is not None:
        candidates = review.proposals
    else:
        logger.warning("review model returned no parsed output - falling back to raw output text")
        candidates = parse_review_response(response.output_text)

    candidates = drop_unplaceable_candidates(candidates)
    logger.info(f"policy review returned {len(candidates)} proposals")
    return candidates
