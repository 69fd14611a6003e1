"""Ownership of the audio backend, its master bus and the ambient bed."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Callable, Optional

from .ambient import AmbientBed
from .backend import GraphBackend, create_backend
from .engine import EngineConfig
from .errors import BackendAcquisitionFailed, UnsupportedBackend
from .nodes import GainNode

logger = logging.getLogger(__name__)

BackendFactory = Callable[[EngineConfig], GraphBackend]


@dataclass(frozen=True)
class AudioHandles:
    """Backend plus the master gain every sound is routed through."""

    backend: GraphBackend
    master: GainNode


class AudioSession:
    """Lazily created, reusable, fully disposable audio backend.

    Only the session controller calls :meth:`acquire` and :meth:`release`;
    the ambient bed and voices merely consume the returned handles.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        backend_factory: BackendFactory = create_backend,
        ambient: Optional[AmbientBed] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._factory = backend_factory
        self.ambient = ambient or AmbientBed()
        self._backend: Optional[GraphBackend] = None
        self._master: Optional[GainNode] = None
        self.backends_created = 0

    @property
    def is_active(self) -> bool:
        return self._backend is not None

    @property
    def handles(self) -> Optional[AudioHandles]:
        if self._backend is None or self._master is None:
            return None
        return AudioHandles(self._backend, self._master)

    async def acquire(self) -> AudioHandles:
        """Return running handles, creating or resuming the backend as needed."""

        if self._backend is None:
            try:
                backend = self._factory(self.config)
            except UnsupportedBackend:
                raise
            except Exception as exc:
                raise BackendAcquisitionFailed(f"Could not create audio backend: {exc}") from exc
            master = backend.create_gain(self.config.master_gain)
            backend.connect(master, backend.destination)
            self._backend, self._master = backend, master
            self.backends_created += 1
            logger.debug("Created audio backend #%s", self.backends_created)

        backend, master = self._backend, self._master
        assert master is not None
        if backend.state != "running":
            try:
                await asyncio.wait_for(backend.resume(), timeout=self.config.acquire_timeout)
            except Exception as exc:
                if self._backend is backend:
                    await self.release()
                if isinstance(exc, asyncio.TimeoutError):
                    raise BackendAcquisitionFailed(
                        f"Audio backend did not become ready within {self.config.acquire_timeout}s"
                    ) from exc
                raise BackendAcquisitionFailed(f"Could not resume audio backend: {exc}") from exc
            if self._backend is not backend:
                raise BackendAcquisitionFailed("Audio session was released while resuming")

        return AudioHandles(backend, master)

    async def suspend(self) -> None:
        if self._backend is not None:
            await self._backend.suspend()

    async def release(self) -> None:
        """Stop the bed, disconnect the master bus and dispose the backend."""

        self.ambient.stop()
        backend, master = self._backend, self._master
        self._backend, self._master = None, None
        if master is not None:
            master.disconnect()
        if backend is None:
            return
        try:
            await backend.close()
        except Exception as exc:
            logger.warning("Audio backend did not close cleanly: %s", exc)
        logger.debug("Released audio backend")


__all__ = ["AudioHandles", "AudioSession", "BackendFactory"]
