import pytest

from inbox.db import Base, create_db_engine, db_session
import inbox.models  # noqa: F401  (registers tables on Base.metadata)

pytest_plugins = [
    "tests.fixtures.inquiry_fixtures",
    "tests.fixtures.chat_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Fresh in-memory SQLite database per test."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    with db_session(engine) as session:
        yield session
    Base.metadata.drop_all(engine)
    engine.dispose()
