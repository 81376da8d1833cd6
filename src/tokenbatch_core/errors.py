"""Exception taxonomy for tokenbatch-core.

Operation functions raise these errors; the record processor decides whether a
failure skips the record or aborts the batch.
"""

from typing import Any, List, Optional


class TokenBatchError(Exception):
    """Base exception for all tokenbatch errors."""

    def __init__(
        self,
        message: str,
        item_index: Optional[int] = None,
        recovery_suggestions: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.item_index = item_index
        self.recovery_suggestions = recovery_suggestions or []

    def get_detailed_message(self) -> str:
        """Get detailed error message with item context and recovery suggestions."""
        parts = [self.message]

        if self.item_index is not None:
            parts.append(f"Item index: {self.item_index}")

        if self.recovery_suggestions:
            parts.append("Recovery suggestions:")
            for i, suggestion in enumerate(self.recovery_suggestions, 1):
                parts.append(f"  {i}. {suggestion}")

        return "\n".join(parts)

    def to_dict(self) -> dict:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "itemIndex": self.item_index,
        }


# Config errors


class ConfigError(TokenBatchError):
    """Failed to load or validate configuration."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


# Operation errors


class InvalidInputError(TokenBatchError):
    """A record parameter is missing, empty or of the wrong type."""

    def __init__(self, message: str, parameter: Optional[str] = None, item_index: Optional[int] = None) -> None:
        super().__init__(message, item_index=item_index)
        self.parameter = parameter

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["parameter"] = self.parameter
        return data


class LimitExceededError(TokenBatchError):
    """Text exceeds the token limit and the caller asked for a hard failure.

    The check result is computed before raising and kept on ``result``.
    """

    def __init__(self, max_tokens: int, result: Any = False, item_index: Optional[int] = None) -> None:
        super().__init__(
            "String exceeds token limit",
            item_index=item_index,
            recovery_suggestions=[
                f"Shorten the input below {max_tokens} tokens",
                "Use sliceMatchingTokenLimit to split the text into blocks",
                "Disable errorTokenLimit to only flag the record",
            ],
        )
        self.max_tokens = max_tokens
        self.result = result

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["maxTokens"] = self.max_tokens
        data["result"] = self.result
        return data


class ItemProcessingError(TokenBatchError):
    """Unexpected failure while processing a record, wrapped with its index."""

    def __init__(self, original_error: BaseException, item_index: int) -> None:
        super().__init__(str(original_error) or type(original_error).__name__, item_index=item_index)
        self.original_error = original_error


# Tokenizer errors


class TokenizerError(TokenBatchError):
    """Base exception for tokenizer adapter errors."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        encoding_name: Optional[str] = None,
        recovery_suggestions: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message, recovery_suggestions=recovery_suggestions)
        self.adapter_name = adapter_name
        self.encoding_name = encoding_name

    def get_detailed_message(self) -> str:
        parts = [self.message]
        if self.adapter_name:
            parts.append(f"Adapter: {self.adapter_name}")
        if self.encoding_name:
            parts.append(f"Encoding: {self.encoding_name}")
        if self.recovery_suggestions:
            parts.append("Recovery suggestions:")
            for i, suggestion in enumerate(self.recovery_suggestions, 1):
                parts.append(f"  {i}. {suggestion}")
        return "\n".join(parts)


class DependencyMissingError(TokenizerError):
    """Raised when the BPE codec library is not installed."""

    def __init__(self, dependency: str, adapter_name: str) -> None:
        super().__init__(
            f"Required dependency '{dependency}' is missing for {adapter_name} adapter",
            adapter_name=adapter_name,
            recovery_suggestions=[
                f"Install {dependency}: pip install {dependency}",
                f"Verify installation: python -c 'import {dependency}'",
            ],
        )
        self.dependency = dependency


class EncodingNotAvailableError(TokenizerError):
    """Raised when a BPE encoding cannot be resolved or loaded."""

    def __init__(self, encoding_name: str, reason: str, adapter_name: str = "tiktoken") -> None:
        super().__init__(
            f"Encoding '{encoding_name}' is not available: {reason}",
            adapter_name=adapter_name,
            encoding_name=encoding_name,
            recovery_suggestions=[
                "Check the encoding name (e.g. cl100k_base, o200k_base, p50k_base, r50k_base)",
                "Ensure the encoding file can be downloaded or is present in TIKTOKEN_CACHE_DIR",
            ],
        )
        self.reason = reason
