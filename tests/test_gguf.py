"""Unit tests for GGUF metadata reading and writing."""

import struct

import pytest

import ggtok
from ggtok.errors import LoadError, MetadataError
from ggtok.gguf import GGUF_MAGIC, GGUFWriter, read_gguf_metadata, write_gguf_metadata
from ggtok.metadata import DictMetadata, MetadataValue, ValueType


@pytest.fixture
def spm_gguf(tmp_path, spm_store):
    """Write the SPM fixture vocabulary to a GGUF file and return its path."""
    path = tmp_path / "spm.gguf"
    write_gguf_metadata(path, spm_store.to_metadata())
    return path


@pytest.fixture
def bpe_gguf(tmp_path, bpe_store):
    """Write the BPE fixture vocabulary to a GGUF file and return its path."""
    path = tmp_path / "bpe.gguf"
    write_gguf_metadata(path, bpe_store.to_metadata())
    return path


# Round trip through a file
# ---------------------------------------------------------------------------


def test_spm_file_tokenizes_like_store(spm_gguf, spm_tokenizer):
    """A tokenizer loaded from file matches one built in memory."""
    tok = ggtok.from_gguf(spm_gguf)
    assert tok.store.type == ggtok.VocabType.SPM
    assert tok.store.id_to_score == spm_tokenizer.store.id_to_score
    text = "hello world"
    assert tok.tokenize(text, add_bos=True, add_eos=True) == spm_tokenizer.tokenize(
        text, add_bos=True, add_eos=True
    )


def test_bpe_file_tokenizes_like_store(bpe_gguf, bpe_tokenizer):
    """Merge ranks survive the file round trip."""
    tok = ggtok.from_gguf(bpe_gguf)
    assert tok.store.type == ggtok.VocabType.BPE
    assert dict(tok.store.merge_ranks) == dict(bpe_tokenizer.store.merge_ranks)
    assert tok.tokenize("hello world 12!") == bpe_tokenizer.tokenize("hello world 12!")


def test_value_types_after_read(spm_gguf):
    """Arrays keep their item type and scalars their width."""
    source = read_gguf_metadata(spm_gguf)
    tokens = source.lookup("tokenizer.ggml.tokens")
    assert tokens.type == ValueType.ARRAY
    assert tokens.item_type == ValueType.STRING
    assert source.lookup("tokenizer.ggml.scores").item_type == ValueType.FLOAT32
    assert source.lookup("tokenizer.ggml.model") == MetadataValue(ValueType.STRING, "llama")
    assert source.lookup("tokenizer.ggml.bos_token_id") == MetadataValue(ValueType.INT32, 1)


def test_all_scalar_types(tmp_path):
    """Every fixed-width scalar type is written and read back."""
    writer = GGUFWriter()
    written = {
        "u8": MetadataValue(ValueType.UINT8, 200),
        "i8": MetadataValue(ValueType.INT8, -100),
        "u16": MetadataValue(ValueType.UINT16, 60000),
        "i16": MetadataValue(ValueType.INT16, -30000),
        "u32": MetadataValue(ValueType.UINT32, 4_000_000_000),
        "f32": MetadataValue(ValueType.FLOAT32, 0.5),
        "flag": MetadataValue(ValueType.BOOL, True),
        "u64": MetadataValue(ValueType.UINT64, 2**63),
        "i64": MetadataValue(ValueType.INT64, -(2**40)),
        "f64": MetadataValue(ValueType.FLOAT64, 0.1),
        "ids": MetadataValue(ValueType.ARRAY, [1, 2, 3], ValueType.UINT32),
        "empty": MetadataValue(ValueType.ARRAY, [], ValueType.STRING),
    }
    for key, value in written.items():
        writer.add_value(key, value)
    path = tmp_path / "types.gguf"
    writer.write(path)

    source = read_gguf_metadata(path)
    assert len(source) == len(written)
    for key, value in written.items():
        assert source.lookup(key) == value


def test_uint32_special_id_from_file(tmp_path):
    """Special ids stored as UINT32 are honoured."""
    writer = GGUFWriter()
    writer.add_value(
        "tokenizer.ggml.tokens",
        MetadataValue(ValueType.ARRAY, ["<unk>", "a"], ValueType.STRING),
    )
    writer.add_value("tokenizer.ggml.unk_token_id", MetadataValue(ValueType.UINT32, 0))
    writer.add_value("tokenizer.ggml.bos_token_id", MetadataValue(ValueType.INT64, 1))
    path = tmp_path / "ids.gguf"
    writer.write(path)

    store = ggtok.load_vocabulary(path)
    assert store.unk == 0
    # wrong width: treated as unset
    assert store.bos is None


def test_raw_byte_token_survives_file(tmp_path):
    """A token that is not valid UTF-8 is read back and matched by the same raw byte."""
    store = ggtok.build_store(["<unk>", "a", "\udcff"], merges=["a a"], unk_id=0)
    path = tmp_path / "raw.gguf"
    write_gguf_metadata(path, store.to_metadata())
    tok = ggtok.from_gguf(path)
    assert tok.store.id_to_token[2] == "\udcff"
    assert tok.tokenize(b"a\xff") == [1, 2]


def test_file_without_tokens(tmp_path):
    """A GGUF file without the token array cannot build a vocabulary."""
    path = tmp_path / "empty.gguf"
    write_gguf_metadata(path, DictMetadata.from_mapping({"general.name": "x"}))
    with pytest.raises(LoadError):
        ggtok.from_gguf(path)


# Malformed files
# ---------------------------------------------------------------------------


def test_missing_file(tmp_path):
    """A nonexistent path raises MetadataError."""
    with pytest.raises(MetadataError) as exc_info:
        read_gguf_metadata(tmp_path / "nope.gguf")
    assert "nope.gguf" in exc_info.value.path


def test_bad_magic(tmp_path):
    """Files not starting with the GGUF magic are rejected."""
    path = tmp_path / "bad.gguf"
    path.write_bytes(b"GGML" + b"\x00" * 20)
    with pytest.raises(MetadataError, match="not a gguf file"):
        read_gguf_metadata(path)


def test_unsupported_version(tmp_path):
    """Version 1 headers are rejected."""
    path = tmp_path / "v1.gguf"
    path.write_bytes(struct.pack("<II", GGUF_MAGIC, 1) + b"\x00" * 16)
    with pytest.raises(MetadataError, match="unsupported gguf version"):
        read_gguf_metadata(path)


def test_truncated_file(tmp_path, spm_gguf):
    """A file cut short reports the offset it failed at."""
    path = tmp_path / "cut.gguf"
    data = spm_gguf.read_bytes()
    path.write_bytes(data[: len(data) // 2])
    with pytest.raises(MetadataError) as exc_info:
        read_gguf_metadata(path)
    assert exc_info.value.offset is not None
    assert exc_info.value.offset <= len(data) // 2


def test_corrupt_string_length(tmp_path):
    """A string length past the end of the file fails before reading."""
    path = tmp_path / "key.gguf"
    path.write_bytes(struct.pack("<IIQQ", GGUF_MAGIC, 3, 0, 1) + struct.pack("<Q", 2**62))
    with pytest.raises(MetadataError, match="exceeds") as exc_info:
        read_gguf_metadata(path)
    assert exc_info.value.offset == 32


@pytest.mark.parametrize("item_type", [ValueType.FLOAT32, ValueType.STRING])
def test_corrupt_array_count(tmp_path, item_type):
    """An array count larger than the file is rejected for fixed and string items."""
    key = b"k"
    path = tmp_path / "array.gguf"
    path.write_bytes(
        struct.pack("<IIQQ", GGUF_MAGIC, 3, 0, 1)
        + struct.pack("<Q", len(key))
        + key
        + struct.pack("<IIQ", ValueType.ARRAY, item_type, 2**61)
    )
    with pytest.raises(MetadataError, match="exceeds"):
        read_gguf_metadata(path)


def test_unreadable_path(tmp_path):
    """A path that exists but cannot be opened as a file raises MetadataError."""
    with pytest.raises(MetadataError, match="cannot open gguf file") as exc_info:
        read_gguf_metadata(tmp_path)
    assert exc_info.value.path == str(tmp_path)


def test_unknown_value_type(tmp_path):
    """Unknown type tags raise MetadataError."""
    key = b"k"
    path = tmp_path / "tag.gguf"
    path.write_bytes(
        struct.pack("<IIQQ", GGUF_MAGIC, 3, 0, 1)
        + struct.pack("<Q", len(key))
        + key
        + struct.pack("<I", 99)
    )
    with pytest.raises(MetadataError, match="unknown value type"):
        read_gguf_metadata(path)
