"""
Base interface for the tokenization algorithms behind the facade.
"""

from abc import ABC, abstractmethod

from .._unicode import iter_codepoints, span_text
from ..errors import VocabularyError
from ..types import TokenId
from ..vocab import VocabType, VocabularyStore


class TokenizerModel(ABC):
    """
    Abstract base class for SPM and BPE tokenization over a shared vocabulary.

    Models keep no per-call state: everything mutated during ``tokenize`` is
    local to that call, so one instance may serve many threads at once.
    """

    MODEL_TYPE: VocabType

    def __init__(self, store: VocabularyStore) -> None:
        super().__init__()
        if store.type != self.MODEL_TYPE:
            raise VocabularyError(
                f"{self.__class__.__name__} requires a {self.MODEL_TYPE.value} "
                f"vocabulary, got {store.type.value}"
            )
        self.store = store

    @abstractmethod
    def tokenize(self, buf: bytes) -> list[TokenId]:
        """Tokenize UTF-8 bytes into ids, without bos/eos decoration."""
        ...

    def _codepoint_ids(self, buf: bytes, out: list[TokenId]) -> None:
        """
        Append the id of every codepoint in ``buf`` to ``out``.

        Codepoints missing from the vocabulary, and malformed bytes (skipped
        one at a time), become unk; with unk unset they are dropped.
        """
        token_to_id = self.store.token_to_id
        unk = self.store.unk
        for off, n in iter_codepoints(buf):
            tid = token_to_id.get(span_text(buf[off : off + n])) if n else None
            if tid is not None:
                out.append(tid)
            elif unk is not None:
                out.append(unk)
