import sys
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from buildingdesk.config import Base, Settings  # noqa: E402
import buildingdesk.config as app_config  # noqa: E402
import buildingdesk.main as app_main  # noqa: E402
# Import the full models module so every table registers with Base metadata.
from buildingdesk.models import models as _all_models  # noqa: E402,F401
from buildingdesk.services.context import WorkflowContext  # noqa: E402
from buildingdesk.services.notifications import SqlNotificationSink  # noqa: E402
from buildingdesk.services.store import SqlDocumentStore  # noqa: E402

BUILDING_ID = "building-1"
MANAGER_ID = "manager-1"
RESIDENT_ID = "resident-1"


class FrozenClock:
    """Callable clock that only moves when a test tells it to."""

    def __init__(self, value: datetime) -> None:
        self.value = value

    def __call__(self) -> datetime:
        return self.value

    def advance(self, **kwargs) -> None:
        self.value = self.value + timedelta(**kwargs)


@pytest.fixture(scope="session", autouse=True)
def _configure_global_test_db(tmp_path_factory):
    """Configure the app-wide SessionLocal/engine so TestClient uses a DB with all tables."""
    db_dir = tmp_path_factory.mktemp("globaldb")
    db_path = db_dir / "app.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    app_config.SessionLocal = SessionLocal
    app_config.engine = engine
    app_main.engine = engine
    yield
    engine.dispose()


@pytest.fixture
def db_session(tmp_path) -> Generator[Session, None, None]:
    """Provide a fresh SQLite database for each test."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(db_session: Session) -> SqlDocumentStore:
    return SqlDocumentStore(db_session)


@pytest.fixture
def make_context(db_session: Session, store: SqlDocumentStore, clock: FrozenClock) -> Callable[..., WorkflowContext]:
    def _create(actor_id: str = MANAGER_ID, building_id: str = BUILDING_ID) -> WorkflowContext:
        return WorkflowContext(
            building_id=building_id,
            actor_id=actor_id,
            store=store,
            notifier=SqlNotificationSink(db_session, building_id=building_id),
            clock=clock,
            settings=Settings(),
        )

    return _create


@pytest.fixture
def ctx(make_context) -> WorkflowContext:
    return make_context()


@pytest.fixture
def resident_ctx(make_context) -> WorkflowContext:
    return make_context(actor_id=RESIDENT_ID)
