"""Adapter for the ``nero:extension/extractor@0.0.1`` interface."""

from typing import Any, Optional, Sequence

from nerohost.capabilities import wire_field
from nerohost.models import (
    Episode,
    EpisodesPage,
    Filter,
    FilterCategory,
    SearchFilter,
    Series,
    SeriesPage,
    SeriesVideo,
)
from nerohost.semver import SemanticVersion
from nerohost.state import ExecutionState

from .base import InterfaceAdapter


def _series(raw: Any) -> Series:
    return Series(
        id=wire_field(raw, "id"),
        title=wire_field(raw, "title"),
        poster_url=wire_field(raw, "poster-url"),
        synopsis=wire_field(raw, "synopsis"),
        kind=wire_field(raw, "type"),
    )


def _episode(raw: Any) -> Episode:
    return Episode(
        id=wire_field(raw, "id"),
        number=wire_field(raw, "number"),
        title=wire_field(raw, "title"),
        thumbnail_url=wire_field(raw, "thumbnail-url"),
        description=wire_field(raw, "description"),
    )


def _filter_category(raw: Any) -> FilterCategory:
    return FilterCategory(
        id=wire_field(raw, "id"),
        display_name=wire_field(raw, "display-name"),
        filters=[
            Filter(id=wire_field(f, "id"), display_name=wire_field(f, "display-name"))
            for f in wire_field(raw, "filters")
        ],
    )


class V0_0_1Adapter(InterfaceAdapter):
    """Baseline interface. Video headers come back as resource handles."""

    MIN_VERSION = SemanticVersion(0, 0, 1)
    INTERFACE = "nero:extension/extractor@0.0.1"
    FUNCTIONS = ("filters", "search", "get-series-episodes", "get-series-videos")

    def encode_filters(self, filters: Sequence[SearchFilter]) -> list[Any]:
        """Convert search filters to wire records; ids are passed through as-is."""
        return [self.engine.record(id=f.id, values=list(f.values)) for f in filters]

    def filters(self, state: ExecutionState) -> list[FilterCategory]:
        payload = self.invoke("filters")
        return self.decode(lambda p: [_filter_category(c) for c in p], payload)

    def search(
        self,
        state: ExecutionState,
        query: str,
        page: Optional[int],
        filters: Sequence[SearchFilter],
    ) -> SeriesPage:
        payload = self.invoke("search", query, page, self.encode_filters(filters))
        return self.decode(
            lambda p: SeriesPage(
                items=[_series(s) for s in wire_field(p, "items")],
                has_next_page=wire_field(p, "has-next-page"),
            ),
            payload,
        )

    def get_series_episodes(
        self, state: ExecutionState, series_id: str, page: Optional[int]
    ) -> EpisodesPage:
        payload = self.invoke("get-series-episodes", series_id, page)
        return self.decode(
            lambda p: EpisodesPage(
                items=[_episode(e) for e in wire_field(p, "items")],
                has_next_page=wire_field(p, "has-next-page"),
            ),
            payload,
        )

    def get_series_videos(
        self, state: ExecutionState, series_id: str, episode_id: str
    ) -> list[SeriesVideo]:
        payload = self.invoke("get-series-videos", series_id, episode_id)
        return self.decode(lambda p: [self._video(state, v) for v in p], payload)

    def _video(self, state: ExecutionState, raw: Any) -> SeriesVideo:
        # Headers live in the resource table until the call scope releases them
        headers = list(state.table.get(wire_field(raw, "video-headers")))
        width, height = wire_field(raw, "resolution")
        return SeriesVideo(
            video_url=wire_field(raw, "video-url"),
            video_headers=headers,
            server=wire_field(raw, "server"),
            resolution=(width, height),
        )
