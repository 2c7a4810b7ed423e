"""nerohost - a sandboxed WebAssembly extension host for content extraction."""

from nerohost.errors import (
    CallTimeoutError,
    CompileError,
    DecodeError,
    EngineError,
    ExtractError,
    GuestError,
    GuestTrapError,
    InstantiationError,
    LinkError,
    LoadError,
    MetadataError,
    NeroHostError,
    ReadError,
    UnsupportedVersionError,
)
from nerohost.extension import Extension
from nerohost.host import ExtensionHost
from nerohost.loader import load_extension
from nerohost.models import (
    Episode,
    EpisodesPage,
    Filter,
    FilterCategory,
    Page,
    SearchFilter,
    Series,
    SeriesPage,
    SeriesVideo,
)
from nerohost.semver import SemanticVersion

__version__ = "0.1.0"

__all__ = [
    "CallTimeoutError",
    "CompileError",
    "DecodeError",
    "EngineError",
    "Episode",
    "EpisodesPage",
    "Extension",
    "ExtensionHost",
    "ExtractError",
    "Filter",
    "FilterCategory",
    "GuestError",
    "GuestTrapError",
    "InstantiationError",
    "LinkError",
    "LoadError",
    "MetadataError",
    "NeroHostError",
    "Page",
    "ReadError",
    "SearchFilter",
    "SemanticVersion",
    "Series",
    "SeriesPage",
    "SeriesVideo",
    "UnsupportedVersionError",
    "load_extension",
]
