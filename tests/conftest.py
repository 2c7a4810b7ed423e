"""Pytest configuration and fixtures.

Guests are simulated: ``FakeEngine`` stands in for the wasmtime-backed
``SandboxEngine`` at the same seams (compile, store, linker, instantiate,
exports, call), and ``FakeGuest`` plays the component's exported
``extractor`` interface, including calls back into host imports.
"""

import threading
import time
from collections import namedtuple
from types import SimpleNamespace

import pytest
import pytest_asyncio

from nerohost.config import Settings
from nerohost.engine import SandboxEngine
from nerohost.errors import CompileError, GuestTrapError, InstantiationError
from nerohost.metadata import COMPONENT_HEADER, WASM_MAGIC

# Tagged result shape, used when both result cases lift to the same type
Variant = namedtuple("Variant", ["tag", "payload"])

HTTP_IMPORT = "nero:extension/http@0.0.1"
EXTRACTOR_EXPORT = "nero:extension/extractor@0.0.1"


def leb128(value: int) -> bytes:
    """Encode an unsigned LEB128 integer."""
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def wasm_name(text: str) -> bytes:
    raw = text.encode("utf-8")
    return leb128(len(raw)) + raw


def custom_section(name: str, payload: bytes) -> bytes:
    body = wasm_name(name) + payload
    return b"\x00" + leb128(len(body)) + body


def build_component(version="0.0.1", sections=(), header=COMPONENT_HEADER) -> bytes:
    """Build component bytes carrying a ``version`` section plus extra sections."""
    data = WASM_MAGIC + header
    if version is not None:
        data += custom_section("version", version.encode("utf-8"))
    for section in sections:
        data += section
    return data


# Fake runtime


class FakeLinkerInstance:
    def __init__(self, funcs: dict):
        self.funcs = funcs

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def add_instance(self, name: str) -> "FakeLinkerInstance":
        return FakeLinkerInstance(self.funcs.setdefault(name, {}))

    def add_func(self, name: str, func):
        self.funcs[name] = func


class FakeLinker:
    def __init__(self):
        self.imports: dict = {}
        self.wasip2 = False

    def add_wasip2(self):
        self.wasip2 = True

    def root(self) -> FakeLinkerInstance:
        return FakeLinkerInstance(self.imports)


class FakeEngine:
    """Drop-in for SandboxEngine that runs a FakeGuest instead of wasm."""

    def __init__(self, guest=None):
        self.guest = guest or FakeGuest()
        self.compile_error = None
        self.closed = False
        self.stores = []
        self.instantiations = 0

    def compile(self, wasm_bytes: bytes):
        if self.compile_error:
            raise CompileError(self.compile_error)
        return SimpleNamespace(bytes=wasm_bytes)

    def new_store(self, state):
        store = SimpleNamespace(state=state)
        self.stores.append(store)
        return store

    def new_linker(self):
        return FakeLinker()

    def instantiate(self, linker, store, compiled):
        if not linker.wasip2 or HTTP_IMPORT not in linker.imports:
            raise InstantiationError("unsatisfied imports")
        self.instantiations += 1
        self.guest.imports = linker.imports[HTTP_IMPORT]
        return SimpleNamespace(guest=self.guest)

    def export_functions(self, store, instance, interface, names):
        if interface != EXTRACTOR_EXPORT:
            raise InstantiationError(f"component does not export '{interface}'")
        exports = instance.guest.exports()
        missing = [name for name in names if name not in exports]
        if missing:
            raise InstantiationError(f"missing required exports: {', '.join(missing)}")
        return {name: exports[name] for name in names}

    def call(self, store, func, *args):
        return func(store, *args)

    record = staticmethod(SandboxEngine.record)

    def close(self):
        self.closed = True


NARUTO_SERIES = [
    {
        "id": "naruto",
        "title": "Naruto",
        "poster-url": "https://cdn.example.com/naruto.jpg",
        "synopsis": "A young ninja seeks recognition.",
        "type": "TV",
    },
    {
        "id": "naruto-shippuden",
        "title": "Naruto: Shippuden",
        "poster-url": None,
        "synopsis": None,
        "type": "TV",
    },
    {
        "id": "boruto",
        "title": "Boruto: Naruto Next Generations",
        "poster-url": "https://cdn.example.com/boruto.jpg",
        "synopsis": None,
        "type": None,
    },
]


class FakeGuest:
    """
    In-process stand-in for a compiled extension.

    Results use the shapes the runtime lifts for ``result<T, string>``: the
    bare payload for ``ok`` and a bare string for ``err``. Records each call's
    start and end so tests can check serialization.
    """

    def __init__(self, name="fake", delay=0.0):
        self.name = name
        self.delay = delay
        self.imports = None
        self.events = []
        self.received_filters = []
        self.fail_episodes = False
        self.fail_videos = False
        self.bad_output = False
        self.trap_search = False
        self.missing_exports = ()
        self._events_lock = threading.Lock()

    def exports(self):
        exports = {
            "filters": self.filters,
            "search": self.search,
            "get-series-episodes": self.get_series_episodes,
            "get-series-videos": self.get_series_videos,
        }
        for name in self.missing_exports:
            exports.pop(name, None)
        return exports

    def _enter(self, op):
        with self._events_lock:
            self.events.append(("start", op, time.monotonic()))
        if self.delay:
            time.sleep(self.delay)

    def _leave(self, op):
        with self._events_lock:
            self.events.append(("end", op, time.monotonic()))

    def filters(self, store):
        self._enter("filters")
        try:
            # Echo back whatever the last search received
            return [
                {
                    "id": getattr(f, "id"),
                    "display-name": getattr(f, "id"),
                    "filters": [{"id": v, "display-name": v} for v in getattr(f, "values")],
                }
                for f in self.received_filters
            ]
        finally:
            self._leave("filters")

    def search(self, store, query, page, filters):
        self._enter("search")
        try:
            if self.trap_search:
                raise GuestTrapError("wasm trap: wasm `unreachable` instruction executed")
            self.received_filters = list(filters)
            if self.bad_output:
                return {
                    "items": [{"id": "x", "title": "X", "poster-url": "not a url",
                               "synopsis": None, "type": None}],
                    "has-next-page": False,
                }
            items = [s for s in NARUTO_SERIES if query.lower() in s["title"].lower()]
            return {"items": items, "has-next-page": page is None}
        finally:
            self._leave("search")

    def get_series_episodes(self, store, series_id, page):
        self._enter("get_series_episodes")
        try:
            if self.fail_episodes:
                return f"failed to fetch episodes for {series_id}: 503"
            items = [
                {
                    "id": f"{series_id}-{n}",
                    "number": n,
                    "title": f"Episode {n}",
                    "thumbnail-url": None,
                    "description": None,
                }
                for n in (1, 2, 3)
            ]
            return {"items": items, "has-next-page": False}
        finally:
            self._leave("get_series_episodes")

    def get_series_videos(self, store, series_id, episode_id):
        self._enter("get_series_videos")
        try:
            if episode_id.endswith("-0"):
                return []
            handle = self.imports["new-headers"](
                store, [("Referer", "https://source.example.com/"), ("User-Agent", "guest")]
            )
            if self.fail_videos:
                return f"no playable source for {episode_id}"
            video_url = f"https://cdn.example.com/{episode_id}/1080.m3u8"
            if self.bad_output:
                video_url = "not a url"
            return [
                {
                    "video-url": video_url,
                    "video-headers": handle,
                    "server": "main",
                    "resolution": (1920, 1080),
                }
            ]
        finally:
            self._leave("get_series_videos")


@pytest.fixture(name="settings")
def settings_fixture(tmp_path, monkeypatch):
    """Settings isolated from any config.toml or .env in the working directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NEROHOST_CONFIG_FILE", str(tmp_path / "missing.toml"))
    return Settings()


@pytest.fixture(name="guest")
def guest_fixture():
    return FakeGuest()


@pytest.fixture(name="engine")
def engine_fixture(guest):
    return FakeEngine(guest)


@pytest.fixture(name="component_file")
def component_file_fixture(tmp_path):
    """Write a component declaring version 0.0.1 and return its path."""
    path = tmp_path / "fake-extension.wasm"
    path.write_bytes(build_component("0.0.1"))
    return path


@pytest.fixture(name="make_component")
def make_component_fixture(tmp_path):
    """Factory writing component files with arbitrary metadata."""

    def make(name="ext.wasm", version="0.0.1", sections=(), header=COMPONENT_HEADER):
        path = tmp_path / name
        path.write_bytes(build_component(version, sections, header))
        return path

    return make


@pytest_asyncio.fixture(name="extension")
async def extension_fixture(engine, component_file, settings):
    """A loaded extension backed by the fake guest."""
    from nerohost.loader import load_extension

    ext = await load_extension(engine, component_file, settings=settings)
    yield ext
    ext.close()
