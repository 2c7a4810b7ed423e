"""Tests for plugin system integration."""

import inspect
from unittest.mock import patch

import pytest

from nerohost import hookspecs
from nerohost.plugins import describe_plugin, get_plugin_manager, hookimpl, load_plugins, pm


@pytest.mark.unit
class TestPluginManager:
    """Test plugin manager functionality."""

    def test_get_plugin_manager(self):
        """Test getting plugin manager instance."""
        manager = get_plugin_manager()
        assert manager is not None
        assert manager.project_name == "nerohost"

    def test_plugin_manager_singleton(self):
        """Test plugin manager is a singleton."""
        assert get_plugin_manager() is get_plugin_manager()

    def test_hookspecs_registered(self):
        """Test hook specifications are available on the global manager."""
        assert hasattr(pm.hook, "nerohost_allow_request")
        assert hasattr(pm.hook, "nerohost_extension_loaded")

    @patch("nerohost.plugins.pm.load_setuptools_entrypoints", side_effect=RuntimeError("bad plugin"))
    @patch("nerohost.plugins.console")
    def test_load_plugins_handles_errors(self, mock_console, mock_load):
        """Test that plugin loading errors are reported, not raised."""
        load_plugins()

        mock_console.print.assert_called_once()
        assert "bad plugin" in mock_console.print.call_args[0][0]

    @patch("nerohost.plugins.console")
    def test_load_plugins_reports_roles(self, mock_console):
        """Test loaded plugins are listed with what they do."""

        class EgressAudit:
            @hookimpl
            def nerohost_allow_request(self, request):
                return None

        plugin = EgressAudit()

        def register(group):
            pm.register(plugin, name="egress-audit")
            return 1

        with patch("nerohost.plugins.pm.load_setuptools_entrypoints", side_effect=register):
            try:
                assert load_plugins() == 1
            finally:
                pm.unregister(plugin)

        printed = [call[0][0] for call in mock_console.print.call_args_list]
        assert any("Loaded 1 host plugin" in line for line in printed)
        assert any("egress-audit: vets egress" in line for line in printed)

    @patch("nerohost.plugins.console")
    def test_unknown_hook_is_rejected(self, mock_console):
        """Test a plugin implementing an undefined hook is unregistered."""

        class Stray:
            @hookimpl
            def nerohost_grant_filesystem(self, extension):
                return True

        plugin = Stray()

        def register(group):
            pm.register(plugin, name="stray")
            return 1

        with patch("nerohost.plugins.pm.load_setuptools_entrypoints", side_effect=register):
            assert load_plugins() == 0

        assert not pm.is_registered(plugin)
        assert "rejected" in mock_console.print.call_args_list[0][0][0]

    def test_describe_plugin(self):
        """Test plugin descriptions name each implemented hook's role."""

        class Both:
            @hookimpl
            def nerohost_allow_request(self, request):
                return None

            @hookimpl
            def nerohost_extension_loaded(self, extension):
                pass

        plugin = Both()
        pm.register(plugin)
        try:
            assert describe_plugin(plugin) == "observes loads, vets egress"
        finally:
            pm.unregister(plugin)


@pytest.mark.integration
class TestAllowRequestHook:
    """Test the egress veto hook."""

    def test_first_result_wins(self):
        """Test the hook returns the first non-None answer."""

        class Abstain:
            @hookimpl
            def nerohost_allow_request(self, request):
                return None

        class Deny:
            @hookimpl
            def nerohost_allow_request(self, request):
                return False

        plugins = [Abstain(), Deny()]
        for plugin in plugins:
            pm.register(plugin)
        try:
            assert pm.hook.nerohost_allow_request(request=object()) is False
        finally:
            for plugin in plugins:
                pm.unregister(plugin)

    def test_no_plugins_abstain(self):
        """Test no registered plugins means no decision."""
        assert pm.hook.nerohost_allow_request(request=object()) is None


@pytest.mark.unit
class TestHookSpecification:
    """Test hook specification."""

    def test_hookspec_signatures(self):
        """Test hookspecs have the documented parameters."""
        assert "request" in inspect.signature(hookspecs.nerohost_allow_request).parameters
        assert "extension" in inspect.signature(hookspecs.nerohost_extension_loaded).parameters
