"""Per-record token operations.

Each operation is a plain function taking validated input and a
:class:`~tokenbatch_core.tokenizer.BpeTokenizer`. Failures are raised as
:class:`~tokenbatch_core.errors.TokenBatchError` subclasses; the caller decides
whether they skip a record or abort the batch.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Sequence, Tuple

from .errors import InvalidInputError, LimitExceededError
from .tokenizer import BpeTokenizer

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2048


class Operation(str, Enum):
    """Batch-wide operation applied to every record."""

    ENCODE = "encode"
    DECODE = "decode"
    COUNT_TOKENS = "countTokens"
    IS_WITHIN_TOKEN_LIMIT = "isWithinTokenLimit"
    SLICE_MATCHING_TOKEN_LIMIT = "sliceMatchingTokenLimit"

    @property
    def default_destination_key(self) -> str:
        return DEFAULT_DESTINATION_KEYS[self]

    @property
    def parameters(self) -> FrozenSet[str]:
        """Names of the record parameters this operation reads."""
        return OPERATION_PARAMETERS[self]

    @property
    def description(self) -> str:
        return OPERATION_INFO[self].description

    @classmethod
    def parse(cls, value: Any) -> "Operation":
        """Parse an operation from its value (``countTokens``) or name (``COUNT_TOKENS``)."""
        if isinstance(value, Operation):
            return value
        if isinstance(value, str):
            for op in cls:
                if value == op.value or value.upper() == op.name:
                    return op
        valid = ", ".join(op.value for op in cls)
        raise InvalidInputError(f"Unknown operation '{value}'. Valid operations: {valid}", parameter="operation")


@dataclass(frozen=True)
class OperationInfo:
    """Display metadata for an operation."""

    name: str
    description: str
    action: str


OPERATION_INFO: Dict[Operation, OperationInfo] = {
    Operation.ENCODE: OperationInfo(
        name="Encode",
        description="Encode a string into BPE tokens. Returns an array of tokens.",
        action="Encode a string into BPE tokens",
    ),
    Operation.DECODE: OperationInfo(
        name="Decode",
        description="Decode an array of BPE tokens. Returns the decoded string.",
        action="Decode an array of BPE tokens into a string",
    ),
    Operation.COUNT_TOKENS: OperationInfo(
        name="Count Tokens",
        description="Determines the amount of tokens the string produces. Returns the number of tokens.",
        action="Count tokens of a string",
    ),
    Operation.IS_WITHIN_TOKEN_LIMIT: OperationInfo(
        name="Check Token Limit",
        description="Check if the string is within the provided token limit. Returns true or false.",
        action="Check if string is within token limit",
    ),
    Operation.SLICE_MATCHING_TOKEN_LIMIT: OperationInfo(
        name="Slice to Max Token Limit",
        description="Slice the string into blocks with a max token limit. Returns an array of strings.",
        action="Slice string into sections matching a max token limit",
    ),
}

DEFAULT_DESTINATION_KEYS: Dict[Operation, str] = {
    Operation.ENCODE: "tokens",
    Operation.DECODE: "data",
    Operation.COUNT_TOKENS: "tokenCount",
    Operation.IS_WITHIN_TOKEN_LIMIT: "isWithinTokenLimit",
    Operation.SLICE_MATCHING_TOKEN_LIMIT: "slices",
}

OPERATION_PARAMETERS: Dict[Operation, FrozenSet[str]] = {
    Operation.ENCODE: frozenset({"inputString", "destinationKey"}),
    Operation.DECODE: frozenset({"inputTokens", "destinationKey"}),
    Operation.COUNT_TOKENS: frozenset({"inputString", "destinationKey"}),
    Operation.IS_WITHIN_TOKEN_LIMIT: frozenset(
        {"inputString", "maxTokens", "errorTokenLimit", "destinationKey"}
    ),
    Operation.SLICE_MATCHING_TOKEN_LIMIT: frozenset({"inputString", "maxTokens", "destinationKey"}),
}


@dataclass(frozen=True)
class OperationParameters:
    """Validated parameters for one record."""

    input_string: str = ""
    input_tokens: Tuple[int, ...] = ()
    max_tokens: int = DEFAULT_MAX_TOKENS
    destination_key: str = ""
    error_token_limit: bool = False

    def resolve_destination_key(self, operation: Operation) -> str:
        return self.destination_key or operation.default_destination_key


# ---------------------------------------------------------------------------
# Parameter resolution


def resolve_parameters(operation: Operation, raw: Mapping[str, Any]) -> OperationParameters:
    """Build typed parameters for ``operation`` from a loosely typed mapping.

    Only parameters that apply to the operation are read; missing ones take
    their defaults. Wrong types raise :class:`InvalidInputError` here rather
    than deep inside an operation.
    """
    wanted = operation.parameters
    values: Dict[str, Any] = {}

    if "inputString" in wanted:
        values["input_string"] = _coerce_text(raw.get("inputString", ""))
    if "inputTokens" in wanted:
        values["input_tokens"] = _coerce_tokens(raw.get("inputTokens"))
    if "maxTokens" in wanted:
        values["max_tokens"] = _coerce_max_tokens(raw.get("maxTokens", DEFAULT_MAX_TOKENS))
    if "errorTokenLimit" in wanted:
        values["error_token_limit"] = _coerce_flag(raw.get("errorTokenLimit", False))
    values["destination_key"] = _coerce_destination_key(raw.get("destinationKey", ""))

    return OperationParameters(**values)


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInputError("Input String is not a string", parameter="inputString")
    return value


def _coerce_tokens(value: Any) -> Tuple[int, ...]:
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInputError("Input Tokens field is empty", parameter="inputTokens")
        try:
            value = json.loads(stripped)
        except ValueError:
            raise InvalidInputError("Input Tokens is not an array", parameter="inputTokens")

    if not isinstance(value, (list, tuple)):
        raise InvalidInputError("Input Tokens is not an array", parameter="inputTokens")
    if not value:
        raise InvalidInputError("Input Tokens field is empty", parameter="inputTokens")

    tokens = []
    for token in value:
        if isinstance(token, bool) or not isinstance(token, int) or token < 0:
            raise InvalidInputError(
                f"Input Tokens must contain non-negative integers, got {token!r}",
                parameter="inputTokens",
            )
        tokens.append(token)
    return tuple(tokens)


def _coerce_max_tokens(value: Any) -> int:
    if value is None:
        return DEFAULT_MAX_TOKENS
    if isinstance(value, bool):
        raise InvalidInputError("Max Tokens must be an integer", parameter="maxTokens")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise InvalidInputError("Max Tokens must be an integer", parameter="maxTokens")


def _coerce_flag(value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidInputError("Error When Exceeding Token Limit must be a boolean", parameter="errorTokenLimit")
    return value


def _coerce_destination_key(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInputError("Destination Key is not a string", parameter="destinationKey")
    return value


# ---------------------------------------------------------------------------
# Operations


def _require_text(text: Any) -> str:
    if not isinstance(text, str):
        raise InvalidInputError("Input String is not a string", parameter="inputString")
    if not text:
        raise InvalidInputError("Input String field is empty", parameter="inputString")
    return text


def _require_max_tokens(max_tokens: Any) -> int:
    if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0:
        raise InvalidInputError("Provide Max Tokens. (bigger then 0)", parameter="maxTokens")
    return max_tokens


def encode_text(text: str, tokenizer: BpeTokenizer) -> List[int]:
    """Encode a string into BPE token IDs."""
    return tokenizer.encode(_require_text(text))


def decode_tokens(tokens: Sequence[int], tokenizer: BpeTokenizer) -> str:
    """Decode a non-empty sequence of BPE token IDs."""
    if not isinstance(tokens, (list, tuple)):
        raise InvalidInputError("Input Tokens is not an array", parameter="inputTokens")
    if not tokens:
        raise InvalidInputError("Input Tokens field is empty", parameter="inputTokens")
    return tokenizer.decode(list(tokens))


def count_tokens(text: str, tokenizer: BpeTokenizer) -> int:
    """Number of tokens ``text`` encodes to."""
    return len(encode_text(text, tokenizer))


def check_token_limit(
    text: str,
    max_tokens: int,
    tokenizer: BpeTokenizer,
    error_on_exceed: bool = False,
) -> bool:
    """Check whether ``text`` fits within ``max_tokens``.

    With ``error_on_exceed`` an over-limit text raises
    :class:`LimitExceededError` whose ``result`` holds the computed ``False``.
    """
    text = _require_text(text)
    max_tokens = _require_max_tokens(max_tokens)

    within = tokenizer.is_within_token_limit(text, max_tokens)
    if not within and error_on_exceed:
        raise LimitExceededError(max_tokens, result=within)
    return within


def slice_matching_token_limit(text: str, max_tokens: int, tokenizer: BpeTokenizer) -> List[str]:
    """Slice ``text`` into blocks of at most ``max_tokens`` tokens.

    Text within the limit comes back unchanged as a single block. Otherwise
    the full text is encoded once and the token stream is cut into
    consecutive windows of exactly ``max_tokens`` tokens (the last may be
    shorter), each decoded on its own. Joining the blocks gives back
    ``decode(encode(text))``.

    Windows are not realigned to text boundaries, so a block that splits a
    multi-byte character or a merge may re-encode to a slightly different
    token count.
    """
    text = _require_text(text)
    max_tokens = _require_max_tokens(max_tokens)

    if tokenizer.is_within_token_limit(text, max_tokens):
        return [text]

    tokens = tokenizer.encode(text)
    blocks = [
        tokenizer.decode(tokens[start:start + max_tokens])
        for start in range(0, len(tokens), max_tokens)
    ]
    logger.debug(f"Sliced {len(tokens)} tokens into {len(blocks)} blocks of <= {max_tokens}")
    return blocks


def execute(
    operation: Operation,
    params: OperationParameters,
    tokenizer: BpeTokenizer,
) -> Tuple[str, Any]:
    """Run ``operation`` and return ``(destination_key, result)``."""
    key = params.resolve_destination_key(operation)

    if operation is Operation.ENCODE:
        return key, encode_text(params.input_string, tokenizer)
    if operation is Operation.DECODE:
        return key, decode_tokens(params.input_tokens, tokenizer)
    if operation is Operation.COUNT_TOKENS:
        return key, count_tokens(params.input_string, tokenizer)
    if operation is Operation.IS_WITHIN_TOKEN_LIMIT:
        return key, check_token_limit(
            params.input_string,
            params.max_tokens,
            tokenizer,
            error_on_exceed=params.error_token_limit,
        )
    if operation is Operation.SLICE_MATCHING_TOKEN_LIMIT:
        return key, slice_matching_token_limit(params.input_string, params.max_tokens, tokenizer)

    raise ValueError(f"Unsupported operation: {operation!r}")
