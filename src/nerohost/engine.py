"""Process-wide sandbox engine built on wasmtime.

One ``SandboxEngine`` is created at startup and shared, read-only, by every
loaded extension. It is also the single place that talks to the wasmtime
component API: compiling, creating stores, instantiating, looking up exports,
calling guest functions and building wire values. Only the capability
linker touches a wasmtime object directly, to register host functions on the
linker this engine hands out.
"""

import math
import threading
import time
from typing import Any, Callable, Iterable, Optional

import wasmtime

from nerohost.config import Settings
from nerohost.errors import (
    CallTimeoutError,
    CompileError,
    EngineError,
    GuestTrapError,
    InstantiationError,
)
from nerohost.state import ExecutionState


class SandboxEngine:
    """
    Shared wasmtime engine with a fixed configuration.

    Configuration is decided once in ``create``: the component model is on,
    guest calls are synchronous inside wasmtime and are made async by the
    callers offloading them to worker threads, and epoch interruption is
    enabled only when ``call_timeout`` is configured.
    """

    def __init__(self, engine: wasmtime.Engine, settings: Settings):
        self.engine = engine
        self.settings = settings
        self.call_timeout = settings.call_timeout
        self._ticker: Optional[threading.Thread] = None
        self._stop = threading.Event()

        if self.call_timeout is not None:
            self._deadline_ticks = max(1, math.ceil(self.call_timeout * 1000 / settings.epoch_tick_ms))
            self._ticker = threading.Thread(
                target=self._tick, name="nerohost-epoch", daemon=True
            )
            self._ticker.start()
        else:
            self._deadline_ticks = None

    @classmethod
    def create(cls, settings: Optional[Settings] = None) -> "SandboxEngine":
        """
        Create the process-wide engine.

        Args:
            settings: Host settings (defaults to Settings())

        Raises:
            EngineError: If wasmtime cannot be initialized. This is fatal.
        """
        settings = settings or Settings()
        try:
            config = wasmtime.Config()
            config.epoch_interruption = settings.call_timeout is not None
            engine = wasmtime.Engine(config)
        except (wasmtime.WasmtimeError, AttributeError, TypeError) as e:
            raise EngineError(f"failed to initialize sandbox runtime: {e}") from e
        return cls(engine, settings)

    def _tick(self):
        interval = self.settings.epoch_tick_ms / 1000
        while not self._stop.wait(interval):
            self.engine.increment_epoch()

    def close(self):
        """Stop the epoch ticker, if running."""
        self._stop.set()
        if self._ticker is not None:
            self._ticker.join(timeout=1)
            self._ticker = None

    # Loading

    def compile(self, wasm_bytes: bytes) -> Any:
        """
        Compile component bytes.

        Raises:
            CompileError: If the bytes are not a valid component
        """
        from wasmtime import component

        try:
            return component.Component(self.engine, wasm_bytes)
        except wasmtime.WasmtimeError as e:
            raise CompileError(str(e)) from e

    def new_store(self, state: ExecutionState) -> wasmtime.Store:
        """Create a fresh store for one extension, applying its WASI grants."""
        store = wasmtime.Store(self.engine)

        wasi = wasmtime.WasiConfig()
        if state.wasi.inherit_stdout:
            wasi.inherit_stdout()
        if state.wasi.inherit_stderr:
            wasi.inherit_stderr()
        wasi.env = list(state.wasi.env.items())
        wasi.argv = list(state.wasi.argv)
        store.set_wasi(wasi)

        self._arm_deadline(store)
        return store

    def new_linker(self) -> Any:
        """Create an empty component linker."""
        from wasmtime import component

        return component.Linker(self.engine)

    def instantiate(self, linker: Any, store: wasmtime.Store, compiled: Any) -> Any:
        """
        Instantiate a compiled component against a linker.

        Raises:
            InstantiationError: If imports cannot be satisfied or start code traps
        """
        self._arm_deadline(store)
        try:
            return linker.instantiate(store, compiled)
        except (wasmtime.WasmtimeError, wasmtime.Trap) as e:
            raise InstantiationError(str(e)) from e

    def export_functions(
        self, store: wasmtime.Store, instance: Any, interface: str, names: Iterable[str]
    ) -> dict[str, Any]:
        """
        Resolve functions exported by an interface of an instance.

        Args:
            store: Store the instance lives in
            instance: Instantiated component
            interface: Fully qualified interface name, e.g. ``ns:pkg/iface@1.0.0``
            names: Function names required from that interface

        Raises:
            InstantiationError: If the interface or any function is missing
        """
        iface_index = instance.get_export_index(store, interface)
        if iface_index is None:
            raise InstantiationError(f"component does not export '{interface}'")

        funcs = {}
        missing = []
        for name in names:
            index = instance.get_export_index(store, name, iface_index)
            func = instance.get_func(store, index) if index is not None else None
            if func is None:
                missing.append(name)
            else:
                funcs[name] = func
        if missing:
            raise InstantiationError(
                f"'{interface}' is missing required exports: {', '.join(missing)}"
            )
        return funcs

    # Calling

    def call(self, store: wasmtime.Store, func: Callable, *args) -> Any:
        """
        Call a guest function synchronously.

        Must run on a worker thread while the extension's lock is held.

        Raises:
            CallTimeoutError: If the configured deadline expired
            GuestTrapError: If the guest trapped
        """
        self._arm_deadline(store)
        started = time.monotonic()
        try:
            return func(store, *args)
        except (wasmtime.Trap, wasmtime.WasmtimeError) as e:
            if self._interrupted(e, time.monotonic() - started):
                raise CallTimeoutError(
                    f"guest call exceeded {self.call_timeout}s deadline"
                ) from e
            raise GuestTrapError(str(e)) from e

    def _interrupted(self, error: Exception, elapsed: float) -> bool:
        # Component calls report traps as WasmtimeError, which carries no trap code
        if self._deadline_ticks is None:
            return False
        if isinstance(error, wasmtime.Trap) and error.trap_code is not None:
            return error.trap_code == wasmtime.TrapCode.INTERRUPT
        window = (self._deadline_ticks - 1) * self.settings.epoch_tick_ms / 1000
        return "interrupt" in str(error) or elapsed >= window

    def _arm_deadline(self, store: wasmtime.Store):
        if self._deadline_ticks is not None:
            store.set_epoch_deadline(self._deadline_ticks)

    # Wire values

    @staticmethod
    def record(**fields) -> Any:
        """
        Build a record value to pass into the guest.

        Field names use underscores and are stored under their kebab-case wire
        names, which is how records are lowered and lifted. A host function
        returning ``result<record, string>`` hands back the record itself for
        ``ok`` and a plain string for ``err``; the two cases lift to different
        Python types, so no tagged variant is involved.
        """
        from wasmtime import component

        record = component.Record()
        for name, value in fields.items():
            setattr(record, name.replace("_", "-"), value)
        return record
