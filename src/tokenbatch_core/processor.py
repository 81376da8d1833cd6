"""Batch record processing.

Runs one operation over every record of a batch, writes each result into the
record payload and applies the continue-on-fail policy.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .errors import ItemProcessingError, TokenBatchError
from .operations import Operation, OperationParameters, execute, resolve_parameters
from .tokenizer import BpeTokenizer

logger = logging.getLogger(__name__)


@dataclass
class BatchItem:
    """One record of a batch.

    ``json`` is the payload the operation result is written into. Skipped
    records also carry the ``error`` and the index of the input record they
    were cloned from (``paired_item``).
    """

    json: Dict[str, Any] = field(default_factory=dict)
    error: Optional[BaseException] = None
    paired_item: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"json": self.json}
        if self.error is not None:
            if isinstance(self.error, TokenBatchError):
                data["error"] = self.error.to_dict()
            else:
                data["error"] = {"type": type(self.error).__name__, "message": str(self.error)}
        if self.paired_item is not None:
            data["pairedItem"] = self.paired_item
        return data


@dataclass(frozen=True)
class FieldRef:
    """Parameter value read from a key of the record payload."""

    key: str
    default: Any = None

    def resolve(self, item: BatchItem) -> Any:
        return item.json.get(self.key, self.default)


class StaticParameters:
    """Same parameter values for every record.

    Values may be :class:`FieldRef` instances, which are resolved against
    each record's payload.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values = dict(values or {})

    def __call__(self, index: int, item: BatchItem) -> Dict[str, Any]:
        resolved = {}
        for name, value in self._values.items():
            resolved[name] = value.resolve(item) if isinstance(value, FieldRef) else value
        return resolved

    def __repr__(self) -> str:
        return f"StaticParameters({self._values!r})"


ParameterSource = Callable[[int, BatchItem], Mapping[str, Any]]


@dataclass(frozen=True)
class Success:
    index: int
    item: BatchItem
    destination_key: str


@dataclass(frozen=True)
class Skipped:
    index: int
    item: BatchItem
    error: BaseException


ItemOutcome = Union[Success, Skipped]


@dataclass
class BatchSummary:
    """Counts for a processed batch."""

    operation: Operation
    total: int = 0
    succeeded: int = 0
    skipped: int = 0
    skipped_indexes: List[int] = field(default_factory=list)


def process_item(
    index: int,
    item: BatchItem,
    operation: Operation,
    tokenizer: BpeTokenizer,
    parameters: ParameterSource,
) -> ItemOutcome:
    """Process one record; the result is written only on success."""
    original = copy.deepcopy(item.json)
    try:
        params: OperationParameters = resolve_parameters(operation, parameters(index, item))
        key, result = execute(operation, params, tokenizer)
    except Exception as e:
        if isinstance(e, TokenBatchError):
            e.item_index = index
        logger.debug(f"Item {index} failed during {operation.value}: {e}")
        return Skipped(index=index, item=BatchItem(json=original, error=e, paired_item=index), error=e)

    item.json[key] = result
    return Success(index=index, item=item, destination_key=key)


def iter_outcomes(
    items: Iterable[BatchItem],
    operation: Operation,
    tokenizer: BpeTokenizer,
    parameters: ParameterSource,
) -> Iterator[ItemOutcome]:
    """Lazily fold the batch into per-record outcomes in index order."""
    for index, item in enumerate(items):
        yield process_item(index, item, operation, tokenizer, parameters)


def _abort(outcome: Skipped) -> TokenBatchError:
    error = outcome.error
    if isinstance(error, TokenBatchError):
        error.item_index = outcome.index
        return error
    wrapped = ItemProcessingError(error, item_index=outcome.index)
    wrapped.__cause__ = error
    return wrapped


def process_batch(
    items: List[BatchItem],
    operation: Union[Operation, str],
    tokenizer: BpeTokenizer,
    parameters: Optional[ParameterSource] = None,
    continue_on_fail: bool = False,
    summary: Optional[BatchSummary] = None,
) -> List[BatchItem]:
    """Run ``operation`` over ``items``.

    Args:
        items: Input records; successful ones are updated in place.
        operation: Operation applied to every record.
        tokenizer: BPE tokenizer adapter.
        parameters: Per-record parameter source; defaults to reading
            parameters from the record payload itself.
        continue_on_fail: Collect failed records instead of aborting.
        summary: Optional summary filled in while processing.

    Returns:
        Successful records in input order followed by clones of failed
        records carrying ``error`` and ``paired_item``.

    Raises:
        TokenBatchError: The first failure, with ``item_index`` set, when
            ``continue_on_fail`` is False.
    """
    operation = Operation.parse(operation)
    if parameters is None:
        parameters = lambda index, item: item.json  # noqa: E731
    if summary is None:
        summary = BatchSummary(operation=operation)

    succeeded: List[BatchItem] = []
    skipped: List[BatchItem] = []

    for outcome in iter_outcomes(items, operation, tokenizer, parameters):
        summary.total += 1
        if isinstance(outcome, Success):
            summary.succeeded += 1
            succeeded.append(outcome.item)
            continue

        if not continue_on_fail:
            raise _abort(outcome)

        logger.warning(f"Skipping item {outcome.index}: {outcome.error}")
        summary.skipped += 1
        summary.skipped_indexes.append(outcome.index)
        skipped.append(outcome.item)

    return succeeded + skipped


def items_from_payloads(payloads: Iterable[Mapping[str, Any]]) -> List[BatchItem]:
    """Wrap plain payload mappings as batch items."""
    return [BatchItem(json=dict(payload)) for payload in payloads]
