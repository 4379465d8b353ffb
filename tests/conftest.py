import os

os.environ.setdefault("TESTING", "true")

import pytest
from sqlalchemy import create_engine
from circulation.core import database
from circulation.core.db import Base
from circulation.core.models import Item


@pytest.fixture
def db_session(tmp_path):
    """Binds the scoped session to a throw-away SQLite file.

    A file (rather than :memory:) lets worker threads in the concurrency
    tests share one database through their own connections.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'circulation.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    database.session.remove()
    database.session.configure(bind=engine)
    try:
        yield database.session
    finally:
        database.session.remove()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def make_item(db_session):
    def _make_item(code, quantity, active=True, title=None, author="Anonymous", category="General"):
        db_session.add(Item(
            code=code,
            title=title or f"Title of {code}",
            author=author,
            category=category,
            available_quantity=quantity,
            active=active,
        ))
        db_session.commit()
        return code
    return _make_item
