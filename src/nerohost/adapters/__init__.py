"""Versioned interface adapters.

``ADAPTERS`` is the closed set of supported interface versions, ordered by
their minimum version. Supporting a new interface revision means adding an
adapter class and an entry here; the extraction facade does not change.
"""

from typing import Optional

from nerohost.semver import SemanticVersion

from .base import InterfaceAdapter, unwrap_result
from .v0_0_1 import V0_0_1Adapter

ADAPTERS: tuple[type[InterfaceAdapter], ...] = (V0_0_1Adapter,)


def select_adapter(
    version: SemanticVersion,
    adapters: tuple[type[InterfaceAdapter], ...] = ADAPTERS,
) -> Optional[type[InterfaceAdapter]]:
    """
    Pick the adapter for a declared extension version.

    Chooses the adapter with the greatest minimum version not exceeding
    ``version`` and sharing its major version. Returns None when no adapter
    qualifies; callers must reject the extension.
    """
    selected = None
    for adapter in sorted(adapters, key=lambda a: a.MIN_VERSION):
        if adapter.MIN_VERSION <= version and adapter.MIN_VERSION.major == version.major:
            selected = adapter
    return selected


__all__ = ["ADAPTERS", "InterfaceAdapter", "V0_0_1Adapter", "select_adapter", "unwrap_result"]
