"""Host-side domain models for extraction results.

These are independent of any guest wire representation. Identifiers are
opaque strings scoped to the extension that produced them.
"""

from typing import Generic, Optional, TypeVar

from pydantic import AnyUrl, BaseModel, Field, field_validator

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """A page of results; ``has_next_page`` is a hint only."""

    items: list[T] = Field(default_factory=list)
    has_next_page: bool = False


class Series(BaseModel):
    """A show, film or other browsable series."""

    id: str
    title: str
    poster_url: Optional[AnyUrl] = None
    synopsis: Optional[str] = None
    kind: Optional[str] = Field(default=None, description="e.g. TV, Movie, OVA")


class Episode(BaseModel):
    """A single episode of a series."""

    id: str
    number: int = Field(ge=0, le=65535)
    title: Optional[str] = None
    thumbnail_url: Optional[AnyUrl] = None
    description: Optional[str] = None


class SeriesVideo(BaseModel):
    """A playable video source for an episode."""

    video_url: AnyUrl
    video_headers: list[tuple[str, str]] = Field(default_factory=list)
    server: str
    resolution: tuple[int, int]

    @field_validator("resolution")
    @classmethod
    def check_resolution(cls, v: tuple[int, int]) -> tuple[int, int]:
        """Width and height are u16 on the wire."""
        for dim in v:
            if not 0 <= dim <= 65535:
                raise ValueError(f"resolution component out of range: {dim}")
        return v


class Filter(BaseModel):
    """One selectable value inside a filter category."""

    id: str
    display_name: str


class FilterCategory(BaseModel):
    """A group of filters, e.g. genres or release years."""

    id: str
    display_name: str
    filters: list[Filter] = Field(default_factory=list)


class SearchFilter(BaseModel):
    """Selected values for one filter category, passed to ``search``."""

    id: str
    values: list[str] = Field(default_factory=list)

    @field_validator("values")
    @classmethod
    def dedupe_values(cls, v: list[str]) -> list[str]:
        """Values form a set; keep first-seen order."""
        return list(dict.fromkeys(v))


SeriesPage = Page[Series]
EpisodesPage = Page[Episode]
