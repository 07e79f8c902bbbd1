import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core.db import Base, get_db
from app.core.queue_service import QueueService
from app.main import app

# Setup a file-backed SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_queue.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session():
    # Create the tables
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        # Drop the tables after the test
        Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def client(db_session):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def service(db_session):
    return QueueService(db_session, actor="officer-test")

@pytest.fixture
def officers(service):
    """Two registrar officers and one cashier; J is offline."""
    return {
        "A": service.create_officer("o1", "A", name="Alex", counter_type="registrar"),
        "B": service.create_officer("o2", "B", name="Benedict", counter_type="registrar"),
        "J": service.create_officer("o3", "J", name="John", counter_type="cashier", online=False),
    }
