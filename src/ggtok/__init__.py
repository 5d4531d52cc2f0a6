"""ggtok: SPM and BPE tokenization from GGUF vocabulary metadata."""

from ._models import BpeTokenizer, SpmTokenizer, TokenizerModel
from ._unicode import codepoint_length
from .errors import (
    GGTokError,
    LoadError,
    MetadataError,
    MissingTokensError,
    ModeError,
    PatternError,
    VocabularyError,
)
from .factory import from_gguf, from_metadata, load_vocabulary
from .gguf import read_gguf_metadata, write_gguf_metadata
from .metadata import DictMetadata, MetadataSource, MetadataValue, ValueType
from .parallel import ParallelMode, list_parallel_modes
from .pattern import TokenPattern, list_patterns
from .tokenizer import TextTokenizer
from .vocab import BpeModel, SpmModel, VocabType, VocabularyStore, build_store

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ggtok")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "TextTokenizer",
    "TokenizerModel",
    "SpmTokenizer",
    "BpeTokenizer",
    "VocabularyStore",
    "VocabType",
    "SpmModel",
    "BpeModel",
    "MetadataSource",
    "DictMetadata",
    "MetadataValue",
    "ValueType",
    "TokenPattern",
    "ParallelMode",
    "GGTokError",
    "LoadError",
    "MissingTokensError",
    "MetadataError",
    "VocabularyError",
    "PatternError",
    "ModeError",
    "build_store",
    "codepoint_length",
    "from_gguf",
    "from_metadata",
    "load_vocabulary",
    "read_gguf_metadata",
    "write_gguf_metadata",
    "list_patterns",
    "list_parallel_modes",
]
