"""Shared fixtures: temporary database, stub vision model and API client."""

import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from pathlib import Path

# Point the application at throwaway locations before it is imported
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="meter-reader-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP_ROOT / 'app.db'}")
os.environ.setdefault("UPLOAD_DIR", str(_TMP_ROOT / "uploads"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from meter_reader.core.config import settings  # noqa: E402
from meter_reader.core.database import Base, get_db  # noqa: E402
from meter_reader.main import app  # noqa: E402
from meter_reader.models.enums import MeterKind  # noqa: E402
from meter_reader.services.vision import get_vision_extractor  # noqa: E402

MAY_2024 = datetime(2024, 5, 10, 9, 30, tzinfo=UTC)
JPEG_BYTES = b"\xff\xd8\xff\xe0fake-meter-photo"


class StubExtractor:
    """Deterministic stand-in for the vision model."""

    def __init__(
        self,
        answer: str = "1234.5",
        error: Exception | None = None,
        barrier: threading.Barrier | None = None,
    ) -> None:
        self.answer = answer
        self.error = error
        self.barrier = barrier
        self.calls: list[tuple[bytes, MeterKind, str | None]] = []
        self._lock = threading.Lock()

    def extract(self, image_bytes: bytes, meter_kind: MeterKind, content_type: str | None) -> str:
        with self._lock:
            self.calls.append((image_bytes, meter_kind, content_type))
        if self.barrier is not None:
            self.barrier.wait(timeout=10)
        if self.error is not None:
            raise self.error
        return self.answer


def fixed_clock(moment: datetime = MAY_2024) -> Callable[[], datetime]:
    return lambda: moment


@pytest.fixture(autouse=True)
def uploads(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Store photos written during a test under its own tmp directory."""
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def engine(tmp_path: Path) -> Iterator[Engine]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'readings.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture
def client(session_factory: sessionmaker[Session], extractor: StubExtractor) -> Iterator[TestClient]:
    """API client bound to the temporary database and the stub extractor."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_vision_extractor] = lambda: extractor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
