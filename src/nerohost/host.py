"""Extension host: owns the shared engine and the loaded extensions."""

from pathlib import Path
from typing import Optional

import pluggy
from rich.console import Console

from nerohost.config import Settings
from nerohost.engine import SandboxEngine
from nerohost.extension import Extension
from nerohost.loader import load_extension
from nerohost.plugins import get_plugin_manager

console = Console()


class ExtensionHost:
    """
    Loads extensions against one shared sandbox engine.

    Each successful load yields an independent ``Extension``. Loading the same
    path twice replaces the earlier instance.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[SandboxEngine] = None,
        plugin_manager: Optional[pluggy.PluginManager] = None,
    ):
        """
        Initialize extension host.

        Args:
            settings: Host settings (defaults to Settings())
            engine: Sandbox engine (created from settings if omitted)
            plugin_manager: Host plugin manager (defaults to the global one)
        """
        self.settings = settings or Settings()
        self.engine = engine or SandboxEngine.create(self.settings)
        self.plugin_manager = plugin_manager or get_plugin_manager()
        self.extensions: dict[Path, Extension] = {}

    async def load(self, path: Path | str) -> Extension:
        """
        Load an extension from a component file.

        Raises:
            LoadError: If any load step fails; previously loaded extensions
                are unaffected
        """
        path = Path(path).resolve()
        extension = await load_extension(
            self.engine,
            path,
            settings=self.settings,
            plugin_manager=self.plugin_manager,
        )
        previous = self.extensions.pop(path, None)
        if previous is not None:
            previous.close()
        self.extensions[path] = extension
        return extension

    def get(self, path: Path | str) -> Optional[Extension]:
        """Return the extension loaded from path, if any."""
        return self.extensions.get(Path(path).resolve())

    def unload(self, path: Path | str) -> bool:
        """Drop a loaded extension. Returns False if it was not loaded."""
        extension = self.extensions.pop(Path(path).resolve(), None)
        if extension is None:
            return False
        extension.close()
        console.print(f"[dim]→ Unloaded extension {extension.name}[/dim]")
        return True

    def close(self):
        """Unload everything and stop the engine's background work."""
        for extension in self.extensions.values():
            extension.close()
        self.extensions.clear()
        self.engine.close()
