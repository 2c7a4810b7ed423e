"""Capability linker: the complete list of what a guest may import.

Two capabilities exist. The WASI preview-2 baseline gives clocks and
randomness (no preopened directories, no environment, no arguments). The
``nero:extension/http`` interface gives request/response HTTP through the
host's egress policy. Nothing else is linked, and linking is all or nothing.
"""

from dataclasses import dataclass
from typing import Any, Callable

from nerohost.egress import HttpRequest
from nerohost.errors import EgressError, LinkError
from nerohost.state import ExecutionState

HTTP_INTERFACE = "nero:extension/http@0.0.1"


def wire_field(value: Any, name: str) -> Any:
    """
    Read a field from a guest record.

    Lifted records carry their kebab-case wire names as attributes. Mappings
    and plain objects using snake_case names are accepted too.
    """
    snake = name.replace("-", "_")
    if isinstance(value, dict):
        if name in value:
            return value[name]
        return value[snake]
    if hasattr(value, name):
        return getattr(value, name)
    return getattr(value, snake)


@dataclass
class Capability:
    """A named set of host functions bound into a linker."""

    name: str
    bind: Callable[[Any, Any, ExecutionState], None]


def _bind_wasi(engine, linker, state: ExecutionState):
    linker.add_wasip2()


def _bind_http(engine, linker, state: ExecutionState):
    http = state.http
    if http is None:
        raise LinkError("http capability requires an HTTP context")

    def fetch(store, request):
        try:
            body = wire_field(request, "body")
            response = http.send(
                HttpRequest(
                    method=wire_field(request, "method"),
                    url=wire_field(request, "url"),
                    headers=[tuple(h) for h in wire_field(request, "headers")],
                    body=bytes(body) if body is not None else None,
                )
            )
        except EgressError as e:
            # err side of result<response, string>
            return str(e)
        return engine.record(
            status=response.status,
            url=response.url,
            headers=response.headers,
            body=response.body,
        )

    def new_headers(store, entries):
        return http.new_headers(state.table, [tuple(e) for e in entries])

    def drop_headers(store, handle):
        if handle in state.table:
            state.table.delete(handle)

    with linker.root() as root:
        with root.add_instance(HTTP_INTERFACE) as iface:
            iface.add_func("fetch", fetch)
            iface.add_func("new-headers", new_headers)
            iface.add_func("drop-headers", drop_headers)


WASI_BASELINE = Capability(name="wasi:cli/imports", bind=_bind_wasi)
HTTP_EGRESS = Capability(name=HTTP_INTERFACE, bind=_bind_http)

DEFAULT_CAPABILITIES = (WASI_BASELINE, HTTP_EGRESS)


class CapabilityLinker:
    """Binds a fixed set of capabilities into a fresh linker."""

    def __init__(self, capabilities: tuple[Capability, ...] = DEFAULT_CAPABILITIES):
        self.capabilities = capabilities

    def link(self, engine, state: ExecutionState) -> Any:
        """
        Create a linker with every capability bound.

        Args:
            engine: SandboxEngine providing the linker and wire values
            state: Execution state the host functions close over

        Returns:
            Linker ready for instantiation

        Raises:
            LinkError: If any capability fails to bind
        """
        linker = engine.new_linker()
        for capability in self.capabilities:
            try:
                capability.bind(engine, linker, state)
            except LinkError:
                raise
            except Exception as e:
                raise LinkError(f"failed to link capability '{capability.name}': {e}") from e
        return linker
