import asyncio
import logging

import pytest

from audio.backend import GraphBackend
from audio.errors import BackendAcquisitionFailed, UnsupportedBackend
from audio.session import AudioSession


class SlowBackend(GraphBackend):
    async def resume(self) -> None:
        await asyncio.sleep(10)


class BrokenCloseBackend(GraphBackend):
    async def close(self) -> None:
        raise RuntimeError("device vanished")


@pytest.mark.asyncio
async def test_acquire_creates_running_backend_with_master(engine_config) -> None:
    session = AudioSession(engine_config)
    handles = await session.acquire()

    assert session.is_active
    assert handles.backend.state == "running"
    assert handles.master.gain.default == pytest.approx(0.6)
    assert handles.backend.connected_nodes() == [handles.master]
    await session.release()


@pytest.mark.asyncio
async def test_acquire_is_idempotent(engine_config) -> None:
    session = AudioSession(engine_config)
    first = await session.acquire()
    second = await session.acquire()

    assert first.backend is second.backend
    assert first.master is second.master
    assert session.backends_created == 1
    await session.release()


@pytest.mark.asyncio
async def test_release_then_acquire_builds_fresh_backend(engine_config) -> None:
    session = AudioSession(engine_config)
    first = await session.acquire()
    session.ambient.begin(first.backend, first.master)
    await session.release()

    assert not session.is_active
    assert session.handles is None
    assert not session.ambient.running
    assert first.backend.state == "closed"

    second = await session.acquire()
    assert second.backend is not first.backend
    assert session.backends_created == 2
    assert second.backend.connected_nodes() == [second.master]
    await session.release()


@pytest.mark.asyncio
async def test_suspend_and_reacquire_resumes(engine_config) -> None:
    session = AudioSession(engine_config)
    handles = await session.acquire()
    await session.suspend()
    assert handles.backend.state == "suspended"

    again = await session.acquire()
    assert again.backend is handles.backend
    assert again.backend.state == "running"
    await session.release()


@pytest.mark.asyncio
async def test_release_without_backend_is_noop(engine_config) -> None:
    session = AudioSession(engine_config)
    await session.release()
    assert session.backends_created == 0


@pytest.mark.asyncio
async def test_unsupported_backend_propagates(engine_config) -> None:
    def factory(config):
        raise UnsupportedBackend("no audio here")

    session = AudioSession(engine_config, backend_factory=factory)
    with pytest.raises(UnsupportedBackend):
        await session.acquire()
    assert not session.is_active


@pytest.mark.asyncio
async def test_factory_failure_becomes_acquisition_failure(engine_config) -> None:
    def factory(config):
        raise OSError("device busy")

    session = AudioSession(engine_config, backend_factory=factory)
    with pytest.raises(BackendAcquisitionFailed, match="device busy"):
        await session.acquire()


@pytest.mark.asyncio
async def test_resume_timeout_releases_backend(engine_config) -> None:
    engine_config.acquire_timeout = 0.05
    created = []

    def factory(config):
        backend = SlowBackend(config)
        created.append(backend)
        return backend

    session = AudioSession(engine_config, backend_factory=factory)
    with pytest.raises(BackendAcquisitionFailed, match="did not become ready"):
        await session.acquire()

    assert not session.is_active
    assert created[0].state == "closed"


@pytest.mark.asyncio
async def test_close_failure_is_logged_and_session_cleared(engine_config, caplog) -> None:
    session = AudioSession(engine_config, backend_factory=BrokenCloseBackend)
    await session.acquire()

    with caplog.at_level(logging.WARNING, logger="audio.session"):
        await session.release()

    assert not session.is_active
    assert "did not close cleanly" in caplog.text
