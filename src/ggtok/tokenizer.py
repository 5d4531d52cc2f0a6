"""
Public tokenizer facade over SPM and BPE vocabularies.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from math import ceil

from ._models import BpeTokenizer, SpmTokenizer, TokenizerModel
from ._unicode import to_bytes
from .errors import VocabularyError
from .parallel import ParallelMode, default_workers
from .types import TokenId
from .vocab import BpeModel, SpmModel, VocabularyStore

log = logging.getLogger(__name__)


class TextTokenizer:
    """
    Turns text into token ids for one vocabulary.

    The SPM or BPE algorithm is chosen once, from the vocabulary's model
    variant, when the tokenizer is built. Calls share no mutable state, so a
    single instance can be used from many threads.
    """

    def __init__(self, store: VocabularyStore, *, pattern: str | None = None) -> None:
        """
        :param store: Vocabulary to tokenize against.
        :param pattern: BPE pre-tokenization regex; ignored for SPM vocabularies.
        :raises PatternError: If ``pattern`` does not compile.
        """
        self.store = store
        self._model: TokenizerModel
        match store.model:
            case SpmModel():
                if pattern is not None:
                    log.warning("pre-tokenization pattern is ignored for SPM vocabularies")
                self._model = SpmTokenizer(store)
            case BpeModel():
                self._model = BpeTokenizer(store, pattern)

    def tokenize(
        self, text: str | bytes, add_bos: bool = False, add_eos: bool = False
    ) -> list[TokenId]:
        """
        Tokenize ``text`` into ids.

        Bytes that are not valid UTF-8 never raise; they are skipped and may
        produce the unk id.

        :param text: Text, or its raw UTF-8 bytes.
        :param add_bos: Prepend the bos id when the vocabulary defines one.
        :param add_eos: Append the eos id when the vocabulary defines one.
        :returns: Token ids in text order.
        """
        out: list[TokenId] = []
        bos = self.store.bos
        if add_bos and bos is not None:
            out.append(bos)

        out.extend(self._model.tokenize(to_bytes(text)))

        eos = self.store.eos
        if add_eos and eos is not None:
            out.append(eos)
        return out

    def tokenize_with_positions(
        self,
        text: str | bytes,
        add_bos: bool = False,
        add_eos: bool = False,
        start: int = 0,
    ) -> tuple[list[TokenId], list[int]]:
        """Tokenize ``text`` and pair each id with its position index, counting from ``start``."""
        ids = self.tokenize(text, add_bos=add_bos, add_eos=add_eos)
        return ids, list(range(start, start + len(ids)))

    def tokenize_batch(
        self,
        texts: list[str | bytes],
        add_bos: bool = False,
        add_eos: bool = False,
        num_workers: int | None = None,
        parallel_mode: ParallelMode | str = ParallelMode.AUTO,
    ) -> list[list[TokenId]]:
        """
        Tokenize many texts using the requested parallelization mode.

        ``off`` tokenizes serially. ``batch`` spreads texts over a thread
        pool. ``auto`` runs serially for zero or one text and as ``batch``
        otherwise. Results are in input order either way.

        :param texts: Text inputs to tokenize.
        :param num_workers: Thread count for batch mode (default: ``GGTOK_NUM_WORKERS`` or CPU count).
        :param parallel_mode: Parallelization policy, as enum or name.
        :raises ModeError: If ``parallel_mode`` names no known mode.
        """
        if isinstance(parallel_mode, str) and not isinstance(parallel_mode, ParallelMode):
            parallel_mode = ParallelMode.get(parallel_mode)

        if num_workers is None:
            workers = default_workers()
        else:
            workers = max(1, num_workers)  # "0" interpreted as 1 worker

        def tokenize_one(text: str | bytes) -> list[TokenId]:
            return self.tokenize(text, add_bos=add_bos, add_eos=add_eos)

        def process_batch() -> list[list[TokenId]]:
            """Tokenize grouped texts in parallel."""
            if workers == 1 or len(texts) <= 1:
                return [tokenize_one(text) for text in texts]

            # group texts to reduce task-scheduling overhead when the input
            # contains many documents
            target_tasks = min(len(texts), workers * 2)
            group_size = max(1, ceil(len(texts) / target_tasks))
            text_groups = [
                texts[idx : idx + group_size] for idx in range(0, len(texts), group_size)
            ]

            def tokenize_group(group: list[str | bytes]) -> list[list[TokenId]]:
                return [tokenize_one(text) for text in group]

            with ThreadPoolExecutor(max_workers=workers) as pool:
                groups = list(pool.map(tokenize_group, text_groups))
            return [ids for group in groups for ids in group]

        match parallel_mode:
            case ParallelMode.OFF:
                return [tokenize_one(text) for text in texts]
            case ParallelMode.BATCH:
                return process_batch()
            case ParallelMode.AUTO:
                if len(texts) <= 1:
                    return [tokenize_one(text) for text in texts]
                return process_batch()

    def pad(
        self, ids: list[TokenId], length: int, truncate: bool = True
    ) -> list[TokenId]:
        """
        Right-pad ``ids`` with the pad id up to ``length``.

        :param truncate: Cut sequences longer than ``length``; otherwise they are returned unchanged.
        :raises VocabularyError: If padding is needed but the vocabulary has no pad id.
        """
        if len(ids) >= length:
            return list(ids[:length]) if truncate else list(ids)
        pad = self.store.pad
        if pad is None:
            raise VocabularyError(
                "vocabulary has no pad id", vocab_size=self.store.vocab_size
            )
        return list(ids) + [pad] * (length - len(ids))

    def decode(self, ids: list[TokenId], skip_special: bool = False) -> str:
        """
        Concatenate the text of each id.

        This is a best-effort inverse of :meth:`tokenize`: codepoints that
        were mapped to unk or dropped cannot be recovered.

        :param skip_special: Leave out bos, eos, unk and pad ids.
        :raises VocabularyError: If any id is outside the vocabulary.
        """
        special = self.store.special_ids() if skip_special else set()
        return "".join(
            self.store.token_text(tid) for tid in ids if tid not in special
        )

    def vocab_size(self) -> int:
        """Return the number of tokens in the vocabulary."""
        return self.store.vocab_size
