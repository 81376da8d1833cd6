"""tokenbatch-core - BPE token operations over batches of records."""

from .__version__ import __version__, __version_info__

from .config import TokenBatchConfig, load_config
from .errors import (
    ConfigError,
    DependencyMissingError,
    EncodingNotAvailableError,
    InvalidInputError,
    ItemProcessingError,
    LimitExceededError,
    TokenBatchError,
    TokenizerError,
)
from .operations import (
    DEFAULT_DESTINATION_KEYS,
    DEFAULT_MAX_TOKENS,
    Operation,
    OperationParameters,
    check_token_limit,
    count_tokens,
    decode_tokens,
    encode_text,
    execute,
    resolve_parameters,
    slice_matching_token_limit,
)
from .processor import (
    BatchItem,
    BatchSummary,
    FieldRef,
    Skipped,
    StaticParameters,
    Success,
    items_from_payloads,
    iter_outcomes,
    process_batch,
)
from .tokenizer import (
    DEFAULT_ENCODING,
    BpeTokenizer,
    TiktokenAdapter,
    resolve_tokenizer,
)

__all__ = [
    # Version
    "__version__",
    "__version_info__",
    # Config
    "TokenBatchConfig",
    "load_config",
    # Errors
    "ConfigError",
    "DependencyMissingError",
    "EncodingNotAvailableError",
    "InvalidInputError",
    "ItemProcessingError",
    "LimitExceededError",
    "TokenBatchError",
    "TokenizerError",
    # Operations
    "DEFAULT_DESTINATION_KEYS",
    "DEFAULT_MAX_TOKENS",
    "Operation",
    "OperationParameters",
    "check_token_limit",
    "count_tokens",
    "decode_tokens",
    "encode_text",
    "execute",
    "resolve_parameters",
    "slice_matching_token_limit",
    # Processor
    "BatchItem",
    "BatchSummary",
    "FieldRef",
    "Skipped",
    "StaticParameters",
    "Success",
    "items_from_payloads",
    "iter_outcomes",
    "process_batch",
    # Tokenizer
    "DEFAULT_ENCODING",
    "BpeTokenizer",
    "TiktokenAdapter",
    "resolve_tokenizer",
]
