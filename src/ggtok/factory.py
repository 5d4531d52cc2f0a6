"""Factory functions for creating tokenizers."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .gguf import read_gguf_metadata
from .metadata import DictMetadata, MetadataSource
from .pattern import TokenPattern
from .tokenizer import TextTokenizer
from .vocab import VocabularyStore


def _resolve_pattern(pattern: str | None, custom_pattern: str | None) -> str | None:
    # a custom regex wins over a built-in name
    if custom_pattern is not None:
        return custom_pattern
    if pattern is not None:
        return TokenPattern.get(pattern)
    return None


def load_vocabulary(model_path: str | Path) -> VocabularyStore:
    """
    Load the vocabulary stored in a GGUF file.

    :raises MetadataError: If the file cannot be parsed.
    :raises LoadError: If the file holds no usable token array.
    """
    return VocabularyStore.load(read_gguf_metadata(model_path))


def from_gguf(
    model_path: str | Path,
    pattern: str | None = None,
    *,
    custom_pattern: str | None = None,
) -> TextTokenizer:
    """
    Build a tokenizer from the ``tokenizer.ggml.*`` metadata of a GGUF file.

    The SPM or BPE algorithm is selected from the file's model type.

    :param model_path: Path to the ``.gguf`` file.
    :param pattern: Built-in BPE pre-tokenization pattern name (e.g. "default", "gpt2").
    :param custom_pattern: Custom regex pattern string. Overrides ``pattern``.
    :raises MetadataError: If the file cannot be parsed.
    :raises LoadError: If the file holds no usable token array.
    :raises PatternError: If the pattern is unknown or invalid.

    .. code-block:: python

        tokenizer = from_gguf("path/to/model.gguf")
        ids = tokenizer.tokenize("Hello world", add_bos=True)
    """
    return TextTokenizer(
        load_vocabulary(model_path),
        pattern=_resolve_pattern(pattern, custom_pattern),
    )


def from_metadata(
    metadata: MetadataSource | Mapping[str, Any],
    pattern: str | None = None,
    *,
    custom_pattern: str | None = None,
) -> TextTokenizer:
    """
    Build a tokenizer from a metadata source or a plain mapping of metadata keys.

    .. code-block:: python

        tokenizer = from_metadata({
            "tokenizer.ggml.tokens": ["<unk>", "a", "b", "ab"],
            "tokenizer.ggml.scores": [0.0, -1.0, -1.0, -0.5],
            "tokenizer.ggml.unk_token_id": 0,
        })
    """
    if not isinstance(metadata, MetadataSource):
        metadata = DictMetadata.from_mapping(metadata)
    return TextTokenizer(
        VocabularyStore.load(metadata),
        pattern=_resolve_pattern(pattern, custom_pattern),
    )
