"""SentencePiece-style tokenizer: greedy merging of adjacent symbols by score."""

import heapq
from dataclasses import dataclass
from typing import override

from .._unicode import iter_codepoints, span_bytes, span_text
from ..types import TokenId
from ..vocab import VocabType
from .base import TokenizerModel

# end-of-list marker for symbol links
NO_SYMBOL = -1


@dataclass(slots=True)
class _Symbol:
    """A surviving text span; ``n == 0`` marks a symbol absorbed by its left neighbour."""

    text: str
    n: int
    prev: int
    next: int


@dataclass(slots=True, eq=False)
class _Bigram:
    """A proposed merge of symbols ``left`` and ``right`` into a ``size``-byte piece."""

    left: int
    right: int
    score: float
    size: int

    def __lt__(self, other: "_Bigram") -> bool:
        # heapq pops the smallest item, so "less than" means "merge first":
        # higher score first, then the earlier left symbol
        if self.score != other.score:
            return self.score > other.score
        return self.left < other.left


class SpmTokenizer(TokenizerModel):
    """
    Greedy approximation of SentencePiece segmentation.

    Input is split into one symbol per codepoint. The adjacent pair whose
    concatenation is the best-scoring vocabulary entry is merged repeatedly
    until no mergeable pair is left. No Viterbi pass is made.
    """

    MODEL_TYPE = VocabType.SPM

    @override
    def tokenize(self, buf: bytes) -> list[TokenId]:
        out: list[TokenId] = []
        if not buf:
            return out

        scores = self.store.id_to_score
        if not scores:
            # vocabulary cannot rank merges: signal it with a single unk
            unk = self.store.unk
            if unk is not None:
                out.append(unk)
            return out

        symbols: list[_Symbol] = []
        for off, n in iter_codepoints(buf):
            # malformed bytes get no symbol
            if not n:
                continue
            idx = len(symbols)
            symbols.append(_Symbol(span_text(buf[off : off + n]), n, idx - 1, idx + 1))
        if not symbols:
            return out
        symbols[-1].next = NO_SYMBOL

        queue: list[_Bigram] = []
        for i in range(len(symbols) - 1):
            self._try_add_bigram(symbols, queue, i, i + 1)

        while queue:
            bigram = heapq.heappop(queue)
            left = symbols[bigram.left]
            right = symbols[bigram.right]

            # stale: one side was absorbed or grew since the bigram was queued
            if not left.n or not right.n or left.n + right.n != bigram.size:
                continue

            left.text += right.text
            left.n += right.n
            right.text = ""
            right.n = 0

            left.next = right.next
            if right.next != NO_SYMBOL:
                symbols[right.next].prev = bigram.left

            self._try_add_bigram(symbols, queue, left.prev, bigram.left)
            self._try_add_bigram(symbols, queue, bigram.left, left.next)

        token_to_id = self.store.token_to_id
        # symbol 0 is never absorbed, so the walk starts there
        i = 0
        while i != NO_SYMBOL:
            sym = symbols[i]
            if sym.n:
                tid = token_to_id.get(sym.text)
                if tid is not None:
                    out.append(tid)
                else:
                    self._codepoint_ids(span_bytes(sym.text), out)
            i = sym.next
        return out

    def _try_add_bigram(
        self, symbols: list[_Symbol], queue: list[_Bigram], left: int, right: int
    ) -> None:
        """Queue a merge of ``left`` and ``right`` if the result is a scored vocabulary entry."""
        if left == NO_SYMBOL or right == NO_SYMBOL:
            return
        left_sym = symbols[left]
        right_sym = symbols[right]
        if not left_sym.n or not right_sym.n:
            return

        tid = self.store.token_to_id.get(left_sym.text + right_sym.text)
        scores = self.store.id_to_score
        if tid is not None and tid < len(scores):
            heapq.heappush(
                queue, _Bigram(left, right, scores[tid], left_sym.n + right_sym.n)
            )
