"""GPT-2-style tokenizer: regex pre-segmentation, then rank-ordered pair merging."""

import logging
from typing import Final, override

import regex as re

from .._unicode import span_bytes, span_text, split_codepoints
from ..pattern import TokenPattern, compile_pattern, pre_tokenize
from ..types import TokenId
from ..vocab import VocabType, VocabularyStore
from .base import TokenizerModel

# below this size a vocabulary without merges is treated as a plain
# byte/character table
BOOTSTRAP_VOCAB_SIZE: Final[int] = 256

log = logging.getLogger(__name__)


class BpeTokenizer(TokenizerModel):
    """
    Byte-pair-encoding tokenizer over a vocabulary of merge ranks.

    Each pre-token that is not itself a vocabulary entry is split into
    codepoints, and the adjacent pair with the lowest merge rank is joined
    until no ranked pair is left.
    """

    MODEL_TYPE = VocabType.BPE

    def __init__(self, store: VocabularyStore, pattern: str | None = None) -> None:
        """Initialize with a provided or the default pre-tokenization pattern."""
        super().__init__(store)
        self.pat = pattern if pattern is not None else TokenPattern.DEFAULT.value
        self.compiled_pat: re.Pattern = compile_pattern(self.pat)
        self.bootstrap = (
            not store.merge_ranks and store.vocab_size < BOOTSTRAP_VOCAB_SIZE
        )
        if not store.merge_ranks and not self.bootstrap:
            log.warning(
                "BPE vocabulary has no merges; falling back to whole "
                "pre-token and character lookup"
            )

    @override
    def tokenize(self, buf: bytes) -> list[TokenId]:
        out: list[TokenId] = []
        if not buf:
            return out

        if self.bootstrap:
            # pure character vocabulary: no pre-tokenization, no merging
            self._codepoint_ids(buf, out)
            return out

        token_to_id = self.store.token_to_id
        for word in pre_tokenize(self.compiled_pat, span_text(buf)):
            # whole pre-token is known: no merging needed
            tid = token_to_id.get(word)
            if tid is not None:
                out.append(tid)
                continue

            for piece in self._merge(split_codepoints(span_bytes(word))):
                tid = token_to_id.get(piece)
                if tid is not None:
                    out.append(tid)
                else:
                    self._codepoint_ids(span_bytes(piece), out)
        return out

    def _merge(self, pieces: list[str]) -> list[str]:
        """
        Apply merges to ``pieces`` in rank order, rescanning every pair each round.

        On equal rank the leftmost pair wins.
        """
        ranks = self.store.merge_ranks
        while len(pieces) > 1:
            best_rank = -1
            best_idx = -1
            for j in range(len(pieces) - 1):
                rank = ranks.get((pieces[j], pieces[j + 1]))
                if rank is not None and (best_rank == -1 or rank < best_rank):
                    best_rank = rank
                    best_idx = j
            if best_idx == -1:
                break
            pieces[best_idx : best_idx + 2] = [pieces[best_idx] + pieces[best_idx + 1]]
        return pieces
