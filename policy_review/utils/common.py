import re
import logging
import tiktoken

from functools import lru_cache
from typing import Optional
from tiktoken import Encoding


logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "o200k_base"
CONTROL_CHARACTERS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")
WRAPPING_CODE_FENCE = re.compile(r"^\s*```[a-zA-Z]*\s*|\s*```\s*$")


@lru_cache(maxsize=None)
def get_tokenizer(encoding_name: str = DEFAULT_ENCODING) -> Encoding:
    """load (and cache) a tiktoken encoding on first use"""

    return tiktoken.get_encoding(encoding_name)


def string_sanitize(string: str) -> str:
    """strip a wrapping markdown code fence and control characters; line breaks and tabs are kept"""

    return WRAPPING_CODE_FENCE.sub("", CONTROL_CHARACTERS.sub("", string)).strip()


def string_truncate(string: str, max_tokens: int = 100_000, tokenizer: Optional[Encoding] = None) -> str:
    """truncate the input string to at most `max_tokens` tokens"""

    tokenizer = tokenizer or get_tokenizer()
    tokens = tokenizer.encode(string)
    if len(tokens) <= max_tokens:
        return string

    logger.warning(f"truncating input from {len(tokens)} to {max_tokens} tokens")
    return tokenizer.decode(tokens[:max_tokens])


def count_tokens(string: str, tokenizer: Optional[Encoding] = None) -> int:
    return len((tokenizer or get_tokenizer()).encode(string))
