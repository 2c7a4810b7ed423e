"""Exceptions raised by the extension host.

Load-time errors abort a single load attempt. Extraction errors are local to
one call; the extension stays usable afterwards.
"""


class NeroHostError(Exception):
    """Base class for all extension host errors."""


class EngineError(NeroHostError):
    """The sandbox runtime could not be initialized."""


class ResourceError(NeroHostError):
    """A guest referenced a resource handle that is not in the table."""


# Load errors


class LoadError(NeroHostError):
    """Loading an extension failed."""

    def __init__(self, message: str, path: str | None = None):
        self.message = message
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


class ReadError(LoadError):
    """Module bytes could not be read."""


class MetadataError(LoadError):
    """Version metadata is missing or malformed."""


class CompileError(LoadError):
    """Bytes are not a valid component for this engine."""


class UnsupportedVersionError(LoadError):
    """The declared version matches no known interface adapter."""

    def __init__(self, version, path: str | None = None):
        self.version = version
        super().__init__(f"unsupported extension version {version}", path)


class InstantiationError(LoadError):
    """The component does not satisfy the selected interface."""


class LinkError(InstantiationError):
    """A host capability could not be linked."""


# Extraction errors


class ExtractError(NeroHostError):
    """An extraction call failed."""


class GuestError(ExtractError):
    """The guest reported a domain-level failure."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DecodeError(ExtractError):
    """Guest output could not be mapped to host types."""


class GuestTrapError(ExtractError):
    """The guest trapped while executing a call."""


class CallTimeoutError(GuestTrapError):
    """The guest call exceeded the configured deadline."""


class EgressError(NeroHostError):
    """A guest HTTP request was denied or failed; reported back to the guest."""
