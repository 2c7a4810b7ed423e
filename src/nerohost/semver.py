"""Semantic version triple used for interface adapter selection."""

import re
from typing import NamedTuple

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


class SemanticVersion(NamedTuple):
    """Immutable ``(major, minor, patch)`` version, ordered lexicographically."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> "SemanticVersion":
        """
        Parse a ``MAJOR.MINOR.PATCH`` string.

        A leading ``v`` is accepted. Pre-release and build suffixes are not.

        Raises:
            ValueError: If text is not a plain version triple
        """
        match = _VERSION_RE.match(text.strip())
        if not match:
            raise ValueError(f"invalid semantic version: {text!r}")
        return cls(*(int(part) for part in match.groups()))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"
