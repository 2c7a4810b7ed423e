"""Loaded extension instance and the extraction API.

An ``Extension`` owns one execution context (store + ``ExecutionState``) and
one interface adapter. Its guest is not reentrant, so every call holds the
instance lock for its whole duration, including the time the guest spends
running on a worker thread. Different extensions share nothing but the
engine and run concurrently.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from rich.console import Console

from nerohost.adapters import InterfaceAdapter
from nerohost.config import Settings
from nerohost.errors import GuestTrapError, LoadError
from nerohost.metadata import ExtensionMetadata
from nerohost.models import EpisodesPage, FilterCategory, SearchFilter, SeriesPage, SeriesVideo
from nerohost.semver import SemanticVersion
from nerohost.state import ExecutionState

console = Console()

U16_MAX = 65535


def _check_page(page: Optional[int]) -> Optional[int]:
    if page is not None and not 0 <= page <= U16_MAX:
        raise ValueError(f"page must be between 0 and {U16_MAX}, got {page}")
    return page


class Extension:
    """
    A loaded, instantiated extension.

    Created by ``nerohost.loader.load_extension``; not meant to be built by
    hand outside of tests.
    """

    def __init__(
        self,
        path: Path,
        metadata: ExtensionMetadata,
        store: Any,
        state: ExecutionState,
        adapter: InterfaceAdapter,
        settings: Optional[Settings] = None,
        restart: Optional[Callable[[], InterfaceAdapter]] = None,
    ):
        self.path = Path(path)
        self.metadata = metadata
        self.store = store
        self.state = state
        self.adapter = adapter
        self.settings = settings or Settings()
        self._restart = restart
        self._lock = asyncio.Lock()

    @property
    def version(self) -> SemanticVersion:
        return self.metadata.version

    @property
    def name(self) -> str:
        return self.path.stem

    @property
    def busy(self) -> bool:
        """True while a call holds the execution context."""
        return self._lock.locked()

    async def _call(self, operation: str, method: Callable, *args) -> Any:
        """
        Run an adapter method with exclusive access to the execution context.

        The lock is released on every exit path, but only after the guest has
        actually stopped running.
        """
        async with self._lock:
            if self.settings.enable_debug:
                console.print(f"[dim]→ {self.name}: {operation}{args!r}[/dim]")
            task = asyncio.ensure_future(asyncio.to_thread(self._run, method, *args))
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                # The guest keeps running on its thread; keep the lock until it stops
                await asyncio.wait({task})
                if not task.cancelled():
                    task.exception()
                raise

    def _run(self, method: Callable, *args) -> Any:
        """
        Execute an adapter method on the worker thread.

        Resources the guest creates during the call are released when it
        returns. A trap leaves the instance unusable, so it is replaced by a
        fresh instance of the same component before the error propagates.
        """
        with self.state.table.scope():
            try:
                return method(self.state, *args)
            except GuestTrapError as trap:
                if self._restart is None:
                    raise
                try:
                    self.adapter = self._restart()
                except LoadError as e:
                    raise GuestTrapError(f"{trap}; restart failed: {e}") from e
                self.store = self.adapter.store
                console.print(f"[yellow]⚠ {self.name}: guest trapped, instance restarted[/yellow]")
                raise

    async def filters(self) -> list[FilterCategory]:
        """
        Enumerate the search filters the extension supports.

        Returns:
            Filter categories (possibly empty)

        Raises:
            ExtractError: On guest failure or undecodable output
        """
        return await self._call("filters", self.adapter.filters)

    async def search(
        self,
        query: str,
        page: Optional[int] = None,
        filters: Sequence[SearchFilter] = (),
    ) -> SeriesPage:
        """
        Search the extension's source.

        Args:
            query: Free-text query
            page: Page number, None for the extension's first page
            filters: Selected filters; ids are not validated by the host

        Returns:
            Page of series in extension order
        """
        _check_page(page)
        return await self._call("search", self.adapter.search, query, page, list(filters))

    async def get_series_episodes(self, series_id: str, page: Optional[int] = None) -> EpisodesPage:
        """List a page of episodes for a series."""
        _check_page(page)
        return await self._call(
            "get_series_episodes", self.adapter.get_series_episodes, series_id, page
        )

    async def get_series_videos(self, series_id: str, episode_id: str) -> list[SeriesVideo]:
        """Resolve playable videos for an episode. An empty list is not an error."""
        return await self._call(
            "get_series_videos", self.adapter.get_series_videos, series_id, episode_id
        )

    def close(self):
        """Release host-side resources (the HTTP client)."""
        if self.state.http is not None:
            self.state.http.close()

    def __repr__(self) -> str:
        return f"<Extension {self.name} v{self.version} ({type(self.adapter).__name__})>"
