import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Keep test runs from writing log files or the app database into the working tree.
_TEST_DIR = os.path.join(tempfile.gettempdir(), "nebula-tests")
os.environ.setdefault("NEBULA_LOG_DIR", os.path.join(_TEST_DIR, "logs"))
os.environ.setdefault("NEBULA_DATABASE_URL", f"sqlite:///{os.path.join(_TEST_DIR, 'app.db')}")

from nebula.database import Base, get_db
from nebula.main import app
from nebula.services.llm_client import get_llm_client
from nebula.tests.fake_llm import FakeLLMClient

# Define a test database URL
TEST_DATABASE_URL = "sqlite:///:memory:"  # Use in-memory SQLite for tests
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite defers BEGIN, so the fixture's outer transaction is not real and a released
# SAVEPOINT commits for good. Emit BEGIN ourselves (SQLAlchemy's pysqlite savepoint recipe).
@event.listens_for(engine, "connect")
def _disable_pysqlite_transaction_handling(dbapi_connection, _connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session")
def create_test_tables():
    """Create all database tables once per session before tests run."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function")
def db_session(create_test_tables):
    """
    Provides a transactional database session for a test.
    Manager commits release savepoints; everything is rolled back afterwards.
    Overrides the main app's get_db dependency.
    """
    connection = engine.connect()
    transaction = connection.begin()
    db = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db

    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def fake_llm():
    fake = FakeLLMClient()
    app.dependency_overrides[get_llm_client] = lambda: fake
    try:
        yield fake
    finally:
        app.dependency_overrides.pop(get_llm_client, None)


@pytest.fixture(scope="function")
def client(db_session: Session):
    """Provides a TestClient instance for making requests to the FastAPI app."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def anyio_backend():
    return "asyncio"


# Object builders shared by the unit and API tests.


@pytest.fixture(scope="function")
def workspace_factory(db_session: Session):
    from nebula.data.workspace_manager import WorkspaceManager
    from nebula.schemas.workspace import WorkspaceCreate

    manager = WorkspaceManager(db_session)

    def _create(**overrides):
        payload = {"name": "Future of Field Service", "status": "open"}
        payload.update(overrides)
        return manager.create_workspace(WorkspaceCreate(**payload))

    return _create


@pytest.fixture(scope="function")
def participant_factory(db_session: Session):
    from nebula.data.workspace_manager import WorkspaceManager

    manager = WorkspaceManager(db_session)

    def _create(workspace, display_name: str = "Ada"):
        return manager.add_participant(workspace, display_name)

    return _create


@pytest.fixture(scope="function")
def note_factory(db_session: Session):
    from nebula.data.notes_manager import NotesManager
    from nebula.schemas.note import NoteCreate

    manager = NotesManager(db_session)

    def _create(workspace, content: str, **fields):
        return manager.create_note(workspace, NoteCreate(content=content, **fields))

    return _create


@pytest.fixture(scope="function")
def enable_modules(db_session: Session):
    from nebula.data.workspace_manager import WorkspaceManager
    from nebula.schemas.workspace import ModuleConfigure

    manager = WorkspaceManager(db_session)

    def _enable(workspace, *module_types, **configs):
        modules = []
        for module_type in module_types:
            config = configs.get(module_type.replace("-", "_"), {})
            modules.append(
                manager.configure_module(
                    workspace, ModuleConfigure(module_type=module_type, config=config)
                )
            )
        return modules

    return _enable
