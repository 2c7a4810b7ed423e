"""Base class for version-specific interface adapters."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional, Sequence

from pydantic import ValidationError

from nerohost.errors import DecodeError, GuestError, ResourceError
from nerohost.models import EpisodesPage, FilterCategory, SearchFilter, SeriesPage, SeriesVideo
from nerohost.semver import SemanticVersion
from nerohost.state import ExecutionState

# Failures while walking guest values that mean "output did not match the model"
DECODE_FAILURES = (ValidationError, KeyError, AttributeError, TypeError, ValueError, ResourceError)


def unwrap_result(value: Any) -> Any:
    """
    Unwrap a guest ``result<T, string>`` value.

    When ``T`` and ``string`` lift to different Python types the runtime hands
    back the bare payload for ``ok`` and the bare string for ``err``. No
    extractor function has a string ``ok`` type, so a ``str`` is always the
    error. Tagged variants (``tag``/``payload``) are unwrapped by their tag.

    Raises:
        GuestError: If the guest returned ``err``
        DecodeError: If a tagged value is neither ``ok`` nor ``err``
    """
    if isinstance(value, str):
        raise GuestError(value)
    if not (hasattr(value, "tag") and hasattr(value, "payload")):
        return value

    if value.tag == "ok":
        return value.payload
    if value.tag == "err":
        raise GuestError(str(value.payload))
    raise DecodeError(f"unknown result tag: {value.tag!r}")


class InterfaceAdapter(ABC):
    """
    Binding to one version of the guest ``extractor`` interface.

    Methods are synchronous and touch the store; the facade runs them on a
    worker thread while holding the extension lock.
    """

    MIN_VERSION: ClassVar[SemanticVersion]
    INTERFACE: ClassVar[str]
    FUNCTIONS: ClassVar[tuple[str, ...]]

    def __init__(self, engine, store, funcs: dict[str, Any]):
        self.engine = engine
        self.store = store
        self.funcs = funcs

    @classmethod
    def bind(cls, engine, store, instance) -> "InterfaceAdapter":
        """
        Resolve this version's exports from an instance.

        Raises:
            InstantiationError: If a required export is missing
        """
        funcs = engine.export_functions(store, instance, cls.INTERFACE, cls.FUNCTIONS)
        return cls(engine, store, funcs)

    def invoke(self, name: str, *args) -> Any:
        """Call a guest export and unwrap its result."""
        raw = self.engine.call(self.store, self.funcs[name], *args)
        return unwrap_result(raw)

    @staticmethod
    def decode(convert, payload: Any) -> Any:
        """Run a wire-to-model conversion, mapping failures to DecodeError."""
        try:
            return convert(payload)
        except DECODE_FAILURES as e:
            raise DecodeError(f"could not decode guest output: {e}") from e

    @abstractmethod
    def filters(self, state: ExecutionState) -> list[FilterCategory]:
        """Enumerate the extension's search filters."""

    @abstractmethod
    def search(
        self,
        state: ExecutionState,
        query: str,
        page: Optional[int],
        filters: Sequence[SearchFilter],
    ) -> SeriesPage:
        """Search for series."""

    @abstractmethod
    def get_series_episodes(
        self, state: ExecutionState, series_id: str, page: Optional[int]
    ) -> EpisodesPage:
        """List a page of episodes for a series."""

    @abstractmethod
    def get_series_videos(
        self, state: ExecutionState, series_id: str, episode_id: str
    ) -> list[SeriesVideo]:
        """Resolve playable videos for an episode."""
