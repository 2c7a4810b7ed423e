"""Host plugins for nerohost.

Host plugins are Python packages installed next to the host. They implement
the hooks in ``nerohost.hookspecs`` to veto guest egress or to observe
extension loads. They run outside the sandbox, so they come only from the
``nerohost`` entry point group, never from an extension component.
"""

import pluggy
from rich.console import Console

from . import hookspecs

ENTRY_POINT_GROUP = "nerohost"

# What each hook lets a plugin do, for load reports
HOOK_ROLES = {
    "nerohost_allow_request": "vets egress",
    "nerohost_extension_loaded": "observes loads",
}

console = Console()

pm = pluggy.PluginManager("nerohost")
pm.add_hookspecs(hookspecs)

hookimpl = pluggy.HookimplMarker("nerohost")


def describe_plugin(plugin) -> str:
    """Summarize the hooks a registered plugin implements."""
    callers = pm.get_hookcallers(plugin) or []
    roles = sorted(HOOK_ROLES.get(caller.name, caller.name) for caller in callers)
    return ", ".join(roles) or "no hooks"


def _reject_invalid() -> int:
    # Drop plugins implementing hooks the host does not define
    rejected = 0
    while True:
        try:
            pm.check_pending()
            return rejected
        except pluggy.PluginValidationError as e:
            pm.unregister(e.plugin)
            rejected += 1
            console.print(f"[yellow]⚠ Host plugin rejected: {e}[/yellow]")


def load_plugins() -> int:
    """
    Load host plugins from the ``nerohost`` entry point group.

    Failures are reported, not raised: extensions load and run without
    plugins, only losing the extra egress checks they would add.

    Entry point format in a plugin's pyproject.toml:
        [project.entry-points.nerohost]
        egress_audit = "my_package.egress_audit"

    Returns:
        Number of plugins loaded
    """
    try:
        loaded = pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
    except Exception as e:
        console.print(f"[yellow]⚠ Host plugins not loaded: {e}[/yellow]")
        return 0

    loaded -= _reject_invalid()
    if loaded > 0:
        console.print(f"[dim]→ Loaded {loaded} host plugin(s)[/dim]")
        for name, plugin in pm.list_name_plugin():
            console.print(f"[dim]  • {name}: {describe_plugin(plugin)}[/dim]")
    return loaded


def get_plugin_manager() -> pluggy.PluginManager:
    """Return the process-wide plugin manager consulted by every extension."""
    return pm
