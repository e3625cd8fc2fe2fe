"""
Shared pytest fixtures: fake OCR backend, isolated upload dir and FastAPI TestClient.
"""
import threading

import pytest
from fastapi.testclient import TestClient

from billscan.api import create_app
from billscan.ocr_engine import OCREngine
from billscan.pipeline import ProcessingOrchestrator
from billscan.records import RecordStore

from .fakes import FakeOCRBackend, make_png


@pytest.fixture()
def png_bytes():
    return make_png()


@pytest.fixture()
def fake_backend():
    return FakeOCRBackend()


@pytest.fixture()
def store():
    return RecordStore()


@pytest.fixture()
def make_orchestrator(tmp_path, store):
    created = []

    def _make(backend=None, **overrides):
        options = dict(
            store=store,
            ocr_engine=OCREngine(backend=backend or FakeOCRBackend(), timeout=0),
            upload_dir=str(tmp_path / "uploads"),
            max_workers=2,
            timeout=0,
            keep_uploads=True,
        )
        options.update(overrides)
        orchestrator = ProcessingOrchestrator(**options)
        created.append(orchestrator)
        return orchestrator

    yield _make
    for orchestrator in created:
        orchestrator.shutdown(wait=True)


@pytest.fixture()
def orchestrator(make_orchestrator, fake_backend):
    return make_orchestrator(fake_backend)


@pytest.fixture()
def client(orchestrator):
    app = create_app(orchestrator=orchestrator)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def gate():
    event = threading.Event()
    yield event
    event.set()
