"""Key-value metadata sources that vocabularies are loaded from."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Final, override

from .errors import LoadError

# metadata keys (GGUF naming)
TOKENS_KEY: Final[str] = "tokenizer.ggml.tokens"
MODEL_KEY: Final[str] = "tokenizer.ggml.model"
MERGES_KEY: Final[str] = "tokenizer.ggml.merges"
SCORES_KEY: Final[str] = "tokenizer.ggml.scores"
BOS_KEY: Final[str] = "tokenizer.ggml.bos_token_id"
EOS_KEY: Final[str] = "tokenizer.ggml.eos_token_id"
UNK_KEY: Final[str] = "tokenizer.ggml.unk_token_id"
PAD_KEYS: Final[tuple[str, str]] = (
    "tokenizer.ggml.padding_token_id",
    "tokenizer.ggml.pad_token_id",
)


class ValueType(IntEnum):
    """Value type tags, numbered as in the GGUF format."""

    UINT8 = 0
    INT8 = 1
    UINT16 = 2
    INT16 = 3
    UINT32 = 4
    INT32 = 5
    FLOAT32 = 6
    BOOL = 7
    STRING = 8
    ARRAY = 9
    UINT64 = 10
    INT64 = 11
    FLOAT64 = 12


INTEGER_TYPES: Final[frozenset[ValueType]] = frozenset(
    {
        ValueType.UINT8,
        ValueType.INT8,
        ValueType.UINT16,
        ValueType.INT16,
        ValueType.UINT32,
        ValueType.INT32,
        ValueType.UINT64,
        ValueType.INT64,
    }
)
FLOAT_TYPES: Final[frozenset[ValueType]] = frozenset(
    {ValueType.FLOAT32, ValueType.FLOAT64}
)


@dataclass(frozen=True, slots=True)
class MetadataValue:
    """A typed metadata value; ``item_type`` is set for arrays only."""

    type: ValueType
    value: Any
    item_type: ValueType | None = None


class MetadataSource(ABC):
    """Read-only capability to look up typed values by key."""

    @abstractmethod
    def lookup(self, key: str) -> MetadataValue | None:
        """Return the value stored under ``key`` or ``None`` if absent."""
        ...

    @abstractmethod
    def keys(self) -> Iterable[str]:
        """Return all keys in the source."""
        ...

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.lookup(key) is not None


class DictMetadata(MetadataSource):
    """In-memory metadata source backed by a dict of typed values."""

    def __init__(self, values: Mapping[str, MetadataValue] | None = None) -> None:
        super().__init__()
        self._values: dict[str, MetadataValue] = dict(values or {})

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "DictMetadata":
        """
        Build a source from plain Python values, inferring their types.

        ``bool`` -> BOOL, ``int`` -> INT32/UINT32/INT64 by range, ``float`` ->
        FLOAT32, ``str`` -> STRING, ``list``/``tuple`` -> ARRAY. Values that
        are already :class:`MetadataValue` are kept as given.

        :raises LoadError: If a value has no metadata representation.
        """
        return cls({key: _infer_value(key, value) for key, value in mapping.items()})

    @override
    def lookup(self, key: str) -> MetadataValue | None:
        return self._values.get(key)

    @override
    def keys(self) -> Iterable[str]:
        return self._values.keys()

    def __len__(self) -> int:
        return len(self._values)


def _infer_scalar_type(key: str, value: Any) -> ValueType:
    """Map a Python scalar to its metadata type tag."""
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return ValueType.BOOL
    if isinstance(value, int):
        if -(2**31) <= value < 2**31:
            return ValueType.INT32
        if 0 <= value < 2**32:
            return ValueType.UINT32
        if -(2**63) <= value < 2**63:
            return ValueType.INT64
        raise LoadError(f"integer out of range: {value}", key=key)
    if isinstance(value, float):
        return ValueType.FLOAT32
    if isinstance(value, str):
        return ValueType.STRING
    raise LoadError(f"unsupported metadata value type: {type(value).__name__}", key=key)


def _infer_value(key: str, value: Any) -> MetadataValue:
    if isinstance(value, MetadataValue):
        return value
    if isinstance(value, (list, tuple)):
        items = list(value)
        if not items:
            # element type of an empty array is irrelevant, GGUF writers use uint8
            return MetadataValue(ValueType.ARRAY, items, ValueType.UINT8)
        item_types = {_infer_scalar_type(key, item) for item in items}
        if item_types <= {ValueType.FLOAT32, ValueType.INT32, ValueType.UINT32}:
            # mixed ints and floats in a score array are stored as floats
            if ValueType.FLOAT32 in item_types:
                item_types = {ValueType.FLOAT32}
        if len(item_types) != 1:
            raise LoadError("array items must share one type", key=key)
        return MetadataValue(ValueType.ARRAY, items, item_types.pop())
    return MetadataValue(_infer_scalar_type(key, value), value)
