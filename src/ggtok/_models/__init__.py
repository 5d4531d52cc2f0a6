"""Tokenization algorithms for SPM and BPE vocabularies."""

from .base import TokenizerModel
from .bpe import BpeTokenizer
from .spm import SpmTokenizer


__all__ = ["TokenizerModel", "SpmTokenizer", "BpeTokenizer"]
