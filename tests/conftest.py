import asyncio
import shutil
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from remote_workspace.backend.app import create_app
from remote_workspace.backend.config import Settings
from remote_workspace.backend.workspace import WorkspaceService


class RecordingConnection:
    """Stands in for a live Connection: records every emitted event"""

    def __init__(self, name: str = "conn"):
        self.id = name
        self.events = []

    def emit(self, event, data):
        self.events.append((event, data))

    def named(self, event):
        return [data for name, data in self.events if name == event]

    def terminal_output(self, terminal_id):
        return "".join(
            d["data"] for d in self.named("terminal-data") if d["id"] == terminal_id
        )


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.05):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


def wait_until_sync(predicate, timeout: float = 5.0, interval: float = 0.05):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(interval)


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def workspace(tmp_path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def settings(workspace, tmp_path, monkeypatch) -> Settings:
    monkeypatch.delenv("REMOTE_WORKSPACE_CONFIG", raising=False)
    return Settings(
        workspace_root=workspace,
        state_dir=tmp_path / "state",
        shell="/bin/sh",
        watch_enabled=False,
        log_to_file=False,
    )


@pytest.fixture
def service(workspace) -> WorkspaceService:
    return WorkspaceService(workspace)


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client
