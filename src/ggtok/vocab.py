"""
Immutable vocabulary tables built once from metadata.

A :class:`VocabularyStore` is never mutated after construction and may be
shared read-only by any number of concurrent tokenize calls.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Final

from ._decorators import measure_time
from ._sanitise import render_token
from .errors import LoadError, MissingTokensError, ModeError, VocabularyError
from .metadata import (
    BOS_KEY,
    EOS_KEY,
    FLOAT_TYPES,
    INTEGER_TYPES,
    MERGES_KEY,
    MODEL_KEY,
    PAD_KEYS,
    SCORES_KEY,
    TOKENS_KEY,
    UNK_KEY,
    DictMetadata,
    MetadataSource,
    ValueType,
)
from .types import MergePair, TokenId, TokenText

# model type strings that select the BPE family
BPE_MODEL_NAMES: Final[frozenset[str]] = frozenset({"gpt2", "gpt-2", "bpe"})
# model type string written for SPM vocabularies
SPM_MODEL_NAME: Final[str] = "llama"
VOCAB_SUFFIX: Final[str] = ".vocab"
UNSET: Final[int] = -1

log = logging.getLogger(__name__)


class VocabType(str, Enum):
    """Tokenization family of a vocabulary."""

    SPM = "spm"
    BPE = "bpe"

    @classmethod
    def get(cls, name: str) -> "VocabType":
        """Get vocabulary type by name (case-insensitive)."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ModeError(
                "unknown vocabulary type",
                invalid_name=name,
                available=[vt.value for vt in cls],
            )


@dataclass(frozen=True, slots=True)
class SpmModel:
    """SPM data: per-id unigram scores, empty when none were loaded."""

    scores: tuple[float, ...] = ()


@dataclass(frozen=True, slots=True)
class BpeModel:
    """BPE data: (left, right) -> merge rank, lower ranks merge first."""

    merge_ranks: Mapping[MergePair, int] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not isinstance(self.merge_ranks, MappingProxyType):
            object.__setattr__(self, "merge_ranks", MappingProxyType(dict(self.merge_ranks)))


type VocabModel = SpmModel | BpeModel


@dataclass(frozen=True)
class VocabularyStore:
    """
    Token <-> id tables plus the family-specific data of one vocabulary.

    ``token_to_id`` is derived from ``id_to_token``; for duplicate strings the
    last id wins, so earlier duplicates are reachable by id only. Special ids
    are kept raw (``-1`` when unset) and resolved through :meth:`resolve`.
    """

    id_to_token: tuple[TokenText, ...]
    model: VocabModel = field(default_factory=SpmModel)
    bos_id: int = UNSET
    eos_id: int = UNSET
    unk_id: int = UNSET
    pad_id: int = UNSET
    token_to_id: Mapping[str, TokenId] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        tokens = tuple(self.id_to_token)
        object.__setattr__(self, "id_to_token", tokens)
        # last write wins for duplicate token strings
        object.__setattr__(
            self,
            "token_to_id",
            MappingProxyType({tok: idx for idx, tok in enumerate(tokens)}),
        )
        if isinstance(self.model, SpmModel) and self.model.scores:
            if len(self.model.scores) != len(tokens):
                raise VocabularyError(
                    "score table must match the token count",
                    vocab_size=len(tokens),
                )

    @property
    def type(self) -> VocabType:
        match self.model:
            case BpeModel():
                return VocabType.BPE
            case _:
                return VocabType.SPM

    @property
    def id_to_score(self) -> tuple[float, ...]:
        if isinstance(self.model, SpmModel):
            return self.model.scores
        return ()

    @property
    def merge_ranks(self) -> Mapping[MergePair, int]:
        if isinstance(self.model, BpeModel):
            return self.model.merge_ranks
        return MappingProxyType({})

    @property
    def vocab_size(self) -> int:
        return len(self.id_to_token)

    def resolve(self, raw_id: int) -> TokenId | None:
        """Return ``raw_id`` if it indexes the vocabulary, else ``None``."""
        if 0 <= raw_id < len(self.id_to_token):
            return raw_id
        return None

    @property
    def bos(self) -> TokenId | None:
        return self.resolve(self.bos_id)

    @property
    def eos(self) -> TokenId | None:
        return self.resolve(self.eos_id)

    @property
    def unk(self) -> TokenId | None:
        return self.resolve(self.unk_id)

    @property
    def pad(self) -> TokenId | None:
        return self.resolve(self.pad_id)

    def special_ids(self) -> set[TokenId]:
        """Return every special id that resolves."""
        return {
            tid for tid in (self.bos, self.eos, self.unk, self.pad) if tid is not None
        }

    def token_text(self, token_id: TokenId) -> TokenText:
        """
        Return the text of ``token_id``.

        :raises VocabularyError: If the id is outside the vocabulary.
        """
        if self.resolve(token_id) is None:
            raise VocabularyError(
                "token not found in vocabulary",
                vocab_size=len(self.id_to_token),
                invalid_tok=token_id,
            )
        return self.id_to_token[token_id]

    @classmethod
    @measure_time
    def load(cls, source: MetadataSource) -> "VocabularyStore":
        """
        Build a vocabulary from a metadata source.

        Only the token array is required. Missing optional fields fall back to
        defaults (no scores, no merges, unset special ids) and are never
        reported as errors; a score array of the wrong length is discarded
        with a warning.

        :param source: Key-value metadata to read from.
        :returns: Fully populated vocabulary.
        :raises MissingTokensError: If the token array is absent.
        :raises LoadError: If the token array is malformed.
        """
        tokens = _read_tokens(source)

        model: VocabModel
        model_name = source.lookup(MODEL_KEY)
        if (
            model_name is not None
            and model_name.type == ValueType.STRING
            and model_name.value in BPE_MODEL_NAMES
        ):
            model = BpeModel(_read_merges(source))
        else:
            model = SpmModel(_read_scores(source, len(tokens)))

        store = cls(
            tokens,
            model,
            bos_id=_read_token_id(source, BOS_KEY),
            eos_id=_read_token_id(source, EOS_KEY),
            unk_id=_read_token_id(source, UNK_KEY),
            pad_id=_read_token_id(source, *PAD_KEYS),
        )
        log.info(
            f"vocabulary loaded: type {store.type.value}, {store.vocab_size} tokens, "
            f"{len(store.id_to_score)} scores, {len(store.merge_ranks)} merge rules"
        )
        log.debug(
            f"special ids: bos={store.bos_id} eos={store.eos_id} "
            f"unk={store.unk_id} pad={store.pad_id}"
        )
        return store

    def to_metadata(self) -> DictMetadata:
        """Return metadata that :meth:`load` turns back into an equal store."""
        values: dict[str, object] = {TOKENS_KEY: list(self.id_to_token)}
        match self.model:
            case BpeModel(merge_ranks=ranks):
                values[MODEL_KEY] = "gpt2"
                if ranks:
                    # a rank is a position in the merges array; unused positions
                    # hold an empty entry, which the loader skips
                    merges = [""] * (max(ranks.values()) + 1)
                    for (left, right), rank in ranks.items():
                        merges[rank] = f"{left} {right}"
                    values[MERGES_KEY] = merges
            case SpmModel(scores=scores):
                values[MODEL_KEY] = SPM_MODEL_NAME
                if scores:
                    values[SCORES_KEY] = [float(s) for s in scores]
        for key, raw_id in (
            (BOS_KEY, self.bos_id),
            (EOS_KEY, self.eos_id),
            (UNK_KEY, self.unk_id),
            (PAD_KEYS[0], self.pad_id),
        ):
            if raw_id != UNSET:
                values[key] = raw_id
        return DictMetadata.from_mapping(values)

    def save_vocab(self, file_prefix: str | Path) -> Path:
        """
        Write a human-readable listing of the vocabulary.

        Special ids come first, then one ``[id] text`` line per token (with
        its score for SPM), then BPE merges as ``[rank] [left][right] -> merged``.

        :param file_prefix: Path prefix; the ``.vocab`` suffix is added.
        :returns: Path of the written file.
        """
        vocab_path = Path(file_prefix).with_suffix(VOCAB_SUFFIX)
        vocab_path.parent.mkdir(parents=True, exist_ok=True)

        log.debug(f"saving vocab to {vocab_path}")

        scores = self.id_to_score
        with vocab_path.open("w", encoding="utf-8", newline="\n") as f:
            for name, tid in (
                ("bos", self.bos),
                ("eos", self.eos),
                ("unk", self.unk),
                ("pad", self.pad),
            ):
                if tid is not None:
                    f.write(f"ST {name} [{tid}] {render_token(self.id_to_token[tid])}\n")
            for tid, tok in enumerate(self.id_to_token):
                if scores:
                    f.write(f"[{tid}] {render_token(tok)} {scores[tid]:g}\n")
                else:
                    f.write(f"[{tid}] {render_token(tok)}\n")
            for (left, right), rank in sorted(self.merge_ranks.items(), key=lambda x: x[1]):
                f.write(
                    f"[{rank}] [{render_token(left)}][{render_token(right)}] -> "
                    f"{render_token(left + right)}\n"
                )
        return vocab_path


def _read_tokens(source: MetadataSource) -> list[str]:
    if TOKENS_KEY not in source:
        raise MissingTokensError("token array not found in metadata", key=TOKENS_KEY)
    value = source.lookup(TOKENS_KEY)
    if value.type != ValueType.ARRAY:
        raise LoadError("token entry must be an array", key=TOKENS_KEY)

    tokens: list[str] = []
    for idx, tok in enumerate(value.value):
        if not isinstance(tok, str):
            raise LoadError(f"failed to get token string for id {idx}", key=TOKENS_KEY)
        tokens.append(tok)
    log.debug(f"read {len(tokens)} tokens")
    return tokens


def _read_merges(source: MetadataSource) -> dict[MergePair, int]:
    value = source.lookup(MERGES_KEY)
    if value is None or value.type != ValueType.ARRAY:
        log.warning("BPE model type specified but no merges found")
        return {}

    ranks: dict[MergePair, int] = {}
    skipped = 0
    for rank, entry in enumerate(value.value):
        if not isinstance(entry, str):
            skipped += 1
            continue
        # split on the first space; both sides must be non-empty
        left, sep, right = entry.partition(" ")
        if not sep or not left or not right:
            skipped += 1
            continue
        # a repeated pair keeps its later rank
        ranks[(left, right)] = rank
    if skipped:
        log.debug(f"ignored {skipped} malformed merge entries")
    return ranks


def _read_scores(source: MetadataSource, n_tokens: int) -> tuple[float, ...]:
    value = source.lookup(SCORES_KEY)
    if value is None:
        if n_tokens:
            log.warning("SPM model type but no scores found")
        return ()
    if value.type != ValueType.ARRAY or value.item_type not in FLOAT_TYPES | INTEGER_TYPES:
        log.warning("scores entry is not a numeric array, ignoring it")
        return ()
    if len(value.value) != n_tokens:
        log.warning(
            f"scores array size mismatch for SPM (got {len(value.value)}, "
            f"expected {n_tokens}), ignoring it"
        )
        return ()
    return tuple(float(s) for s in value.value)


def _read_token_id(source: MetadataSource, *keys: str) -> int:
    """Read a special id from the first present key; only 32-bit integers count."""
    for key in keys:
        value = source.lookup(key)
        if value is None:
            continue
        if value.type in (ValueType.INT32, ValueType.UINT32):
            return int(value.value)
        log.debug(f"ignoring {key}: unexpected value type {value.type.name}")
        return UNSET
    return UNSET


def build_store(
    tokens: Iterable[str],
    *,
    scores: Iterable[float] | None = None,
    merges: Iterable[str] | None = None,
    vocab_type: VocabType | str | None = None,
    bos_id: int = UNSET,
    eos_id: int = UNSET,
    unk_id: int = UNSET,
    pad_id: int = UNSET,
) -> VocabularyStore:
    """
    Build a vocabulary from plain Python values via the metadata loader.

    ``vocab_type`` defaults to BPE when ``merges`` is given and SPM otherwise.
    """
    if vocab_type is None:
        vocab_type = VocabType.BPE if merges is not None else VocabType.SPM
    elif isinstance(vocab_type, str) and not isinstance(vocab_type, VocabType):
        vocab_type = VocabType.get(vocab_type)

    values: dict[str, object] = {TOKENS_KEY: list(tokens)}
    if vocab_type == VocabType.BPE:
        values[MODEL_KEY] = "gpt2"
        if merges is not None:
            values[MERGES_KEY] = list(merges)
    else:
        values[MODEL_KEY] = SPM_MODEL_NAME
        if scores is not None:
            values[SCORES_KEY] = [float(s) for s in scores]
    for key, raw_id in (
        (BOS_KEY, bos_id),
        (EOS_KEY, eos_id),
        (UNK_KEY, unk_id),
        (PAD_KEYS[0], pad_id),
    ):
        if raw_id != UNSET:
            values[key] = raw_id
    return VocabularyStore.load(DictMetadata.from_mapping(values))
