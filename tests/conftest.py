"""Shared fixtures for controlmark tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Callable, Union

import httpx
import pytest

from controlmark.core.catalog import ControlCatalog
from controlmark.core.config import DEFAULT_CONFIG
from controlmark.core.session import Session
from controlmark.models.control import Control
from controlmark.models.session import Role, User

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """Route table served through httpx.MockTransport; records every request."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, response: Responder) -> None:
        self.routes[(method, path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {request.url.path}"})
        if callable(route):
            return route(request)
        return route

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def bodies(self, method: str, path: str) -> list[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == method and r.url.path == path
        ]


class RecordingSink:
    def __init__(self, directory: Path):
        self.directory = directory
        self.saved: list[tuple[str, bytes]] = []

    def __call__(self, filename: str, content: bytes) -> Path:
        self.saved.append((filename, content))
        return self.directory / filename


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def config() -> dict:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["api"]["base_url"] = "http://testserver"
    return cfg


@pytest.fixture
def session(tmp_path: Path) -> Session:
    s = Session(
        token="tok-123",
        user=User(user_id="u1", name="Ada", email="ada@example.com", role=Role.USER),
        path=tmp_path / "session.json",
    )
    s.persist()
    return s


@pytest.fixture
def sink(tmp_path: Path) -> RecordingSink:
    return RecordingSink(tmp_path)


@pytest.fixture
def controls() -> list[Control]:
    return [
        Control(id="1.1.1", section="Filesystem Configuration", title="Disable cramfs", riskLevel="high"),
        Control(id="2.1.1", section="Services", title="Remove xinetd", riskLevel="high"),
        Control(id="1.1.2", section="Filesystem Configuration", title="Disable freevxfs", riskLevel="medium"),
    ]


@pytest.fixture
def catalog(controls: list[Control]) -> ControlCatalog:
    return ControlCatalog(controls)


@pytest.fixture
def two_control_catalog_file(tmp_path: Path) -> Path:
    path = tmp_path / "catalog.yaml"
    path.write_text(
        "controls:\n"
        "  - id: A\n"
        "    section: Access\n"
        "    title: Control A\n"
        "  - id: B\n"
        "    section: Access\n"
        "    title: Control B\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def report_payload() -> dict:
    return {
        "report_id": "R1",
        "generated_at": "2026-10-19T10:00:00Z",
        "passed_checks": 1,
        "failed_checks": 1,
        "skipped_checks": 0,
        "compliance_score": 50,
        "fileId": "file-1",
    }
