"""Module loader: turns a component file into an ``Extension``.

Loading runs once per extension, in a fixed order where every step has its
own failure: read, metadata, compile, execution state, adapter selection,
instantiation. Nothing partially loaded is ever returned.
"""

import asyncio
from pathlib import Path
from typing import Optional

import pluggy
from rich.console import Console

from nerohost.adapters import ADAPTERS, InterfaceAdapter, select_adapter
from nerohost.capabilities import CapabilityLinker
from nerohost.config import Settings
from nerohost.egress import HttpContext
from nerohost.errors import LoadError, ReadError, UnsupportedVersionError
from nerohost.extension import Extension
from nerohost.metadata import read_metadata
from nerohost.state import ExecutionState

console = Console()


def read_module(path: Path) -> bytes:
    """
    Read component bytes fully into memory.

    Raises:
        ReadError: If the file cannot be read
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ReadError(e.strerror or str(e), path=str(path)) from e


async def load_extension(
    engine,
    path: Path | str,
    settings: Optional[Settings] = None,
    plugin_manager: Optional[pluggy.PluginManager] = None,
    linker: Optional[CapabilityLinker] = None,
    adapters: tuple[type[InterfaceAdapter], ...] = ADAPTERS,
) -> Extension:
    """
    Load and instantiate an extension.

    Args:
        engine: Shared SandboxEngine
        path: Path to the component file
        settings: Host settings (defaults to Settings())
        plugin_manager: Plugin manager consulted for egress decisions
        linker: Capability linker (defaults to the standard capability set)
        adapters: Supported interface adapters

    Returns:
        Ready-to-use Extension

    Raises:
        ReadError, MetadataError, CompileError, UnsupportedVersionError,
        InstantiationError: Depending on which step failed
    """
    path = Path(path)
    settings = settings or Settings()
    linker = linker or CapabilityLinker()
    state = None

    try:
        # 1. Read
        wasm_bytes = read_module(path)

        # 2. Metadata
        metadata = read_metadata(wasm_bytes)

        # 3. Compile
        compiled = await asyncio.to_thread(engine.compile, wasm_bytes)

        # 4. Fresh execution state
        state = ExecutionState()
        state.http = HttpContext(settings, plugin_manager=plugin_manager)

        # 5. Adapter selection
        adapter_cls = select_adapter(metadata.version, adapters)
        if adapter_cls is None:
            raise UnsupportedVersionError(metadata.version)

        # 6. Link and instantiate, each time into a new store
        def instantiate() -> InterfaceAdapter:
            store = engine.new_store(state)
            component_linker = linker.link(engine, state)
            instance = engine.instantiate(component_linker, store, compiled)
            return adapter_cls.bind(engine, store, instance)

        adapter = await asyncio.to_thread(instantiate)
    except LoadError as e:
        if state is not None and state.http is not None:
            state.http.close()
        if e.path is None:
            e.path = str(path)
        raise

    extension = Extension(
        path, metadata, adapter.store, state, adapter, settings=settings, restart=instantiate
    )
    console.print(
        f"[dim]→ Loaded extension {extension.name} v{metadata.version} "
        f"({adapter_cls.INTERFACE})[/dim]"
    )

    if plugin_manager is not None:
        plugin_manager.hook.nerohost_extension_loaded(extension=extension)

    return extension
