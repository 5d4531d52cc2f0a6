"""
Reading and writing the key-value metadata section of GGUF files.

GGUF (GGML Universal Format) is the container llama.cpp and related engines
use for model weights; tokenizer vocabularies live in its ``tokenizer.ggml.*``
metadata keys. Only the header and the metadata section are handled here:
tensor info and tensor data are never read, and written files carry zero
tensors.
"""

import logging
import os
import struct
from pathlib import Path
from typing import Any, BinaryIO, Final

from ._decorators import measure_time
from .errors import MetadataError
from .metadata import DictMetadata, MetadataSource, MetadataValue, ValueType

GGUF_MAGIC: Final[int] = 0x46554747  # "GGUF" in little-endian
GGUF_VERSION: Final[int] = 3
# version 1 used 32-bit counts and is not supported
SUPPORTED_VERSIONS: Final[frozenset[int]] = frozenset({2, 3})

# struct formats of fixed-width scalar types
_SCALAR_FORMATS: Final[dict[ValueType, str]] = {
    ValueType.UINT8: "<B",
    ValueType.INT8: "<b",
    ValueType.UINT16: "<H",
    ValueType.INT16: "<h",
    ValueType.UINT32: "<I",
    ValueType.INT32: "<i",
    ValueType.FLOAT32: "<f",
    ValueType.BOOL: "<?",
    ValueType.UINT64: "<Q",
    ValueType.INT64: "<q",
    ValueType.FLOAT64: "<d",
}

log = logging.getLogger(__name__)


class _GGUFReader:
    """Sequential little-endian reader that tracks its byte offset."""

    def __init__(self, f: BinaryIO, path: str) -> None:
        self.f = f
        self.path = path
        self.offset = 0
        self.size = os.fstat(f.fileno()).st_size

    def fail(self, message: str) -> MetadataError:
        return MetadataError(message, path=self.path, offset=self.offset)

    def require(self, n: int) -> None:
        """Fail unless ``n`` more bytes remain; counts come from the file and may be corrupt."""
        if n < 0 or self.offset + n > self.size:
            raise self.fail(
                f"length {n} exceeds the {self.size - self.offset} bytes left in the file"
            )

    def read(self, n: int) -> bytes:
        self.require(n)
        data = self.f.read(n)
        if len(data) != n:
            raise self.fail(f"unexpected end of file (wanted {n} bytes, got {len(data)})")
        self.offset += n
        return data

    def unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self.read(struct.calcsize(fmt)))[0]

    def read_string(self) -> str:
        n = self.unpack("<Q")
        raw = self.read(n)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            # vocabularies may hold byte fragments that are not valid UTF-8
            return raw.decode("utf-8", errors="surrogateescape")

    def read_type(self) -> ValueType:
        tag = self.unpack("<I")
        try:
            return ValueType(tag)
        except ValueError:
            raise self.fail(f"unknown value type tag: {tag}")

    def read_scalar(self, vtype: ValueType) -> Any:
        if vtype == ValueType.STRING:
            return self.read_string()
        return self.unpack(_SCALAR_FORMATS[vtype])

    def read_value(self, vtype: ValueType) -> MetadataValue:
        if vtype != ValueType.ARRAY:
            return MetadataValue(vtype, self.read_scalar(vtype))

        item_type = self.read_type()
        if item_type == ValueType.ARRAY:
            raise self.fail("nested arrays are not supported")
        n = self.unpack("<Q")
        if item_type == ValueType.STRING:
            # every string carries at least its 8-byte length
            self.require(n * 8)
            items = [self.read_string() for _ in range(n)]
        else:
            # fixed-width items are unpacked in a single call
            fmt = _SCALAR_FORMATS[item_type]
            size = struct.calcsize(fmt)
            items = list(struct.unpack(f"<{n}{fmt[1]}", self.read(size * n)))
        return MetadataValue(ValueType.ARRAY, items, item_type)


@measure_time
def read_gguf_metadata(path: str | Path) -> DictMetadata:
    """
    Read the metadata key-value section of a GGUF file.

    :param path: Path to the ``.gguf`` file.
    :returns: In-memory metadata source holding every key of the file.
    :raises MetadataError: If the file is missing, truncated or not GGUF v2/v3.
    """
    path = Path(path)
    if not path.exists():
        raise MetadataError("gguf filepath does not exist", path=str(path))

    log.info(f"reading gguf metadata from {path}")

    try:
        f = path.open("rb")
    except OSError as e:
        raise MetadataError(f"cannot open gguf file: {e}", path=str(path))

    with f:
        reader = _GGUFReader(f, str(path))

        magic = reader.unpack("<I")
        if magic != GGUF_MAGIC:
            raise reader.fail(f"not a gguf file (magic {magic:#010x})")
        version = reader.unpack("<I")
        if version not in SUPPORTED_VERSIONS:
            raise reader.fail(f"unsupported gguf version: {version}")

        n_tensors = reader.unpack("<Q")
        n_kv = reader.unpack("<Q")
        log.debug(f"gguf v{version}: {n_kv} metadata keys, {n_tensors} tensors")

        values: dict[str, MetadataValue] = {}
        for _ in range(n_kv):
            key = reader.read_string()
            vtype = reader.read_type()
            values[key] = reader.read_value(vtype)

    metadata = DictMetadata(values)
    log.info(f"read {len(metadata)} metadata keys")
    return metadata


class GGUFWriter:
    """Writes a metadata-only GGUF file."""

    def __init__(self) -> None:
        self.metadata: list[tuple[str, ValueType, bytes]] = []

    def _encode_string(self, s: str) -> bytes:
        encoded = s.encode("utf-8", errors="surrogateescape")
        return struct.pack("<Q", len(encoded)) + encoded

    def _encode_scalar(self, vtype: ValueType, value: Any) -> bytes:
        if vtype == ValueType.STRING:
            return self._encode_string(value)
        return struct.pack(_SCALAR_FORMATS[vtype], value)

    def add_value(self, key: str, value: MetadataValue) -> None:
        if value.type != ValueType.ARRAY:
            data = self._encode_scalar(value.type, value.value)
        else:
            item_type = value.item_type if value.item_type is not None else ValueType.UINT8
            parts = [struct.pack("<I", item_type), struct.pack("<Q", len(value.value))]
            parts.extend(self._encode_scalar(item_type, item) for item in value.value)
            data = b"".join(parts)
        self.metadata.append((key, value.type, data))

    def write(self, path: str | Path) -> None:
        """Write the GGUF file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            # Header
            f.write(struct.pack("<I", GGUF_MAGIC))
            f.write(struct.pack("<I", GGUF_VERSION))
            f.write(struct.pack("<Q", 0))  # n_tensors
            f.write(struct.pack("<Q", len(self.metadata)))  # n_kv

            # Metadata KV pairs
            for key, vtype, data in self.metadata:
                f.write(self._encode_string(key))
                f.write(struct.pack("<I", vtype))
                f.write(data)


def write_gguf_metadata(path: str | Path, source: MetadataSource) -> None:
    """Write every key of ``source`` to a metadata-only GGUF file at ``path``."""
    writer = GGUFWriter()
    for key in source.keys():
        value = source.lookup(key)
        if value is not None:
            writer.add_value(key, value)
    log.info(f"writing {len(writer.metadata)} metadata keys to {path}")
    writer.write(path)
