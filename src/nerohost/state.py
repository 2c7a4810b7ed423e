"""Per-extension execution state.

Each loaded extension gets its own ``ExecutionState``: a resource table for
host objects the guest refers to by handle, the WASI configuration and the
HTTP capability context. State is never shared between extensions.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Iterator, Optional

from nerohost.errors import ResourceError


class ResourceTable:
    """
    Handle table for host-owned resources referenced by a guest.

    Handles are small positive integers, never reused within one table.
    """

    def __init__(self):
        self._entries: dict[int, Any] = {}
        self._next = count(1)

    def push(self, value: Any) -> int:
        """Store a value and return its handle."""
        handle = next(self._next)
        self._entries[handle] = value
        return handle

    def get(self, handle: int) -> Any:
        """
        Look up a resource by handle.

        Raises:
            ResourceError: If the handle is unknown
        """
        try:
            return self._entries[handle]
        except KeyError:
            raise ResourceError(f"unknown resource handle {handle}") from None

    def delete(self, handle: int) -> Any:
        """Remove a resource and return it (ownership moves to the caller)."""
        try:
            return self._entries.pop(handle)
        except KeyError:
            raise ResourceError(f"unknown resource handle {handle}") from None

    @contextmanager
    def scope(self) -> Iterator[None]:
        """
        Drop every resource pushed inside the block when it exits.

        Handles created during a guest call belong to that call; whatever the
        host did not take over by then is released, on success or failure.
        """
        before = set(self._entries)
        try:
            yield
        finally:
            for handle in set(self._entries) - before:
                del self._entries[handle]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, handle: int) -> bool:
        return handle in self._entries


@dataclass
class WasiGrants:
    """
    What the WASI baseline exposes to a guest.

    Clocks and randomness are always available. Everything else defaults to
    denied: no preopened directories, no environment, no arguments, no stdin.
    """

    inherit_stdout: bool = False
    inherit_stderr: bool = False
    env: dict[str, str] = field(default_factory=dict)
    argv: list[str] = field(default_factory=list)


@dataclass
class ExecutionState:
    """Mutable host state bound to one extension's store."""

    table: ResourceTable = field(default_factory=ResourceTable)
    wasi: WasiGrants = field(default_factory=WasiGrants)
    http: Optional[Any] = None  # HttpContext, set by the loader
