"""BPE tokenizer adapter interfaces and defaults."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import DependencyMissingError, EncodingNotAvailableError

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"

# Optional dependency: tiktoken
try:
    import tiktoken  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    tiktoken = None  # type: ignore

# Model to encoding mapping for tiktoken
MODEL_TO_ENCODING: Dict[str, str] = {
    "gpt-4o": "o200k_base",
    "gpt-4o-mini": "o200k_base",
    "gpt-4": "cl100k_base",
    "gpt-4-32k": "cl100k_base",
    "gpt-4-turbo": "cl100k_base",
    "gpt-3.5-turbo": "cl100k_base",
    "gpt-3.5-turbo-16k": "cl100k_base",
    "text-embedding-ada-002": "cl100k_base",
    "text-embedding-3-small": "cl100k_base",
    "text-embedding-3-large": "cl100k_base",
    # Legacy models use different encodings
    "text-davinci-003": "p50k_base",
    "text-davinci-002": "p50k_base",
    "code-davinci-002": "p50k_base",
    "davinci": "r50k_base",
}

# Loaded encodings by name; vocabularies are immutable once loaded.
_ENCODINGS: Dict[str, Any] = {}


class BpeTokenizer(ABC):
    """Abstract base class for BPE tokenizer adapters.

    Implementations must be deterministic and lossless:
    ``decode(encode(text)) == text`` for every string.
    """

    @property
    @abstractmethod
    def adapter_id(self) -> str:
        """Unique identifier for this adapter."""

    @abstractmethod
    def encode(self, text: str) -> List[int]:
        """Encode text into BPE token IDs."""

    @abstractmethod
    def decode(self, tokens: Sequence[int]) -> str:
        """Decode BPE token IDs back into text."""

    def is_within_token_limit(self, text: str, max_tokens: int) -> bool:
        """Return True when ``text`` encodes to at most ``max_tokens`` tokens."""
        return len(self.encode(text)) <= max_tokens


def load_encoding(encoding_name: str) -> Any:
    """Load a tiktoken encoding once and reuse it for the process lifetime."""
    if tiktoken is None:
        raise DependencyMissingError("tiktoken", "tiktoken")

    encoding = _ENCODINGS.get(encoding_name)
    if encoding is not None:
        return encoding

    try:
        encoding = tiktoken.get_encoding(encoding_name)
    except (KeyError, ValueError) as e:
        raise EncodingNotAvailableError(encoding_name, str(e)) from e
    except OSError as e:
        raise EncodingNotAvailableError(encoding_name, f"failed to load vocabulary: {e}") from e

    logger.debug(f"Loaded {encoding_name} encoding")
    _ENCODINGS[encoding_name] = encoding
    return encoding


def resolve_encoding_name(model_name: Optional[str] = None, encoding_name: Optional[str] = None) -> str:
    """Resolve the encoding to use from an explicit name or a model name.

    An explicit encoding name wins. A model name is looked up through
    tiktoken first, then through ``MODEL_TO_ENCODING``.
    """
    if encoding_name:
        return encoding_name
    if not model_name:
        return DEFAULT_ENCODING

    if tiktoken is not None:
        try:
            resolved = tiktoken.encoding_name_for_model(model_name)
            if isinstance(resolved, str) and resolved:
                return resolved
        except KeyError:
            pass

    if model_name in MODEL_TO_ENCODING:
        return MODEL_TO_ENCODING[model_name]

    raise EncodingNotAvailableError(
        model_name, "no known encoding for model; pass an encoding name instead"
    )


class TiktokenAdapter(BpeTokenizer):
    """Tokenizer using the tiktoken library (OpenAI BPE vocabularies)."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING, encoding: Any = None) -> None:
        if encoding is not None:
            self._encoding = encoding
            self._encoding_name = getattr(encoding, "name", encoding_name)
        else:
            self._encoding = load_encoding(encoding_name)
            self._encoding_name = encoding_name

    @property
    def adapter_id(self) -> str:
        return "tiktoken"

    @property
    def encoding_name(self) -> str:
        """Get the name of the encoding being used."""
        return self._encoding_name

    def encode(self, text: str) -> List[int]:
        # Special-token text is encoded as plain text rather than rejected.
        return list(self._encoding.encode(text, disallowed_special=()))

    def decode(self, tokens: Sequence[int]) -> str:
        return self._encoding.decode(list(tokens))

    def is_within_token_limit(self, text: str, max_tokens: int) -> bool:
        return len(self._encoding.encode(text, disallowed_special=())) <= max_tokens

    def __repr__(self) -> str:
        return f"TiktokenAdapter(encoding_name={self._encoding_name!r})"


def resolve_tokenizer(
    model_name: Optional[str] = None,
    encoding_name: Optional[str] = None,
) -> Tuple[BpeTokenizer, str]:
    """Create the tokenizer adapter for a model or encoding.

    Returns:
        Tuple of (adapter, resolved encoding name)
    """
    resolved = resolve_encoding_name(model_name=model_name, encoding_name=encoding_name)
    logger.debug(f"Resolved encoding {resolved} (model={model_name}, encoding={encoding_name})")
    return TiktokenAdapter(encoding_name=resolved), resolved
