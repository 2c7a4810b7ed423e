"""Read extension metadata from a WebAssembly component's custom sections.

Components carry their metadata in top-level custom sections, one UTF-8
string per section (``version``, ``description``, ``authors``, ...), plus the
standard ``producers`` section. Only the top level is inspected: nested core
modules and components are skipped over without being parsed.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional

from nerohost.errors import MetadataError
from nerohost.semver import SemanticVersion

WASM_MAGIC = b"\0asm"
COMPONENT_HEADER = b"\x0d\x00\x01\x00"
MODULE_HEADER = b"\x01\x00\x00\x00"

CUSTOM_SECTION_ID = 0

# Plain string sections written by wasm-metadata
TEXT_SECTIONS = ("description", "authors", "licenses", "homepage", "source", "revision")


@dataclass
class ExtensionMetadata:
    """Metadata declared by an extension component."""

    version: SemanticVersion
    description: Optional[str] = None
    authors: Optional[str] = None
    licenses: Optional[str] = None
    homepage: Optional[str] = None
    source: Optional[str] = None
    revision: Optional[str] = None
    producers: dict[str, dict[str, str]] = field(default_factory=dict)
    is_component: bool = True


class _Reader:
    """Cursor over a byte buffer with LEB128 helpers."""

    def __init__(self, data: bytes, offset: int = 0, end: Optional[int] = None):
        self.data = data
        self.offset = offset
        self.end = len(data) if end is None else end

    def at_end(self) -> bool:
        return self.offset >= self.end

    def byte(self) -> int:
        if self.offset >= self.end:
            raise MetadataError("unexpected end of section data")
        value = self.data[self.offset]
        self.offset += 1
        return value

    def u32(self) -> int:
        result = 0
        shift = 0
        while True:
            b = self.byte()
            result |= (b & 0x7F) << shift
            if not b & 0x80:
                break
            shift += 7
            if shift > 28:
                raise MetadataError("malformed LEB128 integer")
        return result

    def take(self, size: int) -> bytes:
        if self.offset + size > self.end:
            raise MetadataError("section extends past end of data")
        chunk = self.data[self.offset : self.offset + size]
        self.offset += size
        return chunk

    def name(self) -> str:
        raw = self.take(self.u32())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MetadataError(f"invalid UTF-8 in name: {e}") from e


def iter_custom_sections(wasm_bytes: bytes) -> Iterator[tuple[str, bytes]]:
    """
    Yield ``(name, payload)`` for every top-level custom section.

    Args:
        wasm_bytes: Raw module or component bytes

    Raises:
        MetadataError: If the header or section framing is malformed
    """
    if len(wasm_bytes) < 8 or wasm_bytes[:4] != WASM_MAGIC:
        raise MetadataError("not a WebAssembly binary (bad magic)")
    if wasm_bytes[4:8] not in (COMPONENT_HEADER, MODULE_HEADER):
        raise MetadataError(f"unknown WebAssembly version/layer {wasm_bytes[4:8].hex()}")

    reader = _Reader(wasm_bytes, offset=8)
    while not reader.at_end():
        section_id = reader.byte()
        size = reader.u32()
        payload = reader.take(size)
        if section_id != CUSTOM_SECTION_ID:
            continue
        inner = _Reader(payload)
        name = inner.name()
        yield name, payload[inner.offset :]


def _parse_producers(payload: bytes) -> dict[str, dict[str, str]]:
    """Decode the ``producers`` section into ``{field: {name: version}}``."""
    reader = _Reader(payload)
    producers: dict[str, dict[str, str]] = {}
    for _ in range(reader.u32()):
        field_name = reader.name()
        values = producers.setdefault(field_name, {})
        for _ in range(reader.u32()):
            name = reader.name()
            values[name] = reader.name()
    return producers


def read_metadata(wasm_bytes: bytes) -> ExtensionMetadata:
    """
    Extract the declared semantic version and descriptive metadata.

    Args:
        wasm_bytes: Raw component bytes

    Returns:
        ExtensionMetadata for the component

    Raises:
        MetadataError: If the ``version`` section is absent or malformed
    """
    sections: dict[str, bytes] = {}
    for name, payload in iter_custom_sections(wasm_bytes):
        # First occurrence wins
        sections.setdefault(name, payload)

    raw_version = sections.get("version")
    if raw_version is None:
        raise MetadataError("missing 'version' metadata section")
    try:
        version = SemanticVersion.parse(raw_version.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MetadataError(f"malformed 'version' metadata: {e}") from e

    texts = {}
    for key in TEXT_SECTIONS:
        if key in sections:
            texts[key] = sections[key].decode("utf-8", errors="replace")

    producers = {}
    if "producers" in sections:
        producers = _parse_producers(sections["producers"])

    return ExtensionMetadata(
        version=version,
        producers=producers,
        is_component=wasm_bytes[4:8] == COMPONENT_HEADER,
        **texts,
    )
