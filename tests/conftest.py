"""Shared test fixtures for the modelshift test suite."""

from typing import Any, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from modelshift.core.persistence import make_engine
from tests.sample_models import Base, Category, Colour, Supplier


class ListRowSource:
    """In-memory row source: first row is the header row."""

    def __init__(self, rows: list[list[Any]]):
        self._header = rows[0]
        self._rows = iter(rows[1:])

    def header_row(self) -> list[str]:
        return self._header

    def next_data_row(self) -> Optional[list[Any]]:
        return next(self._rows, None)


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def seeded_db(db):
    """Categories Tools/Garden, colours red/blue and two suppliers named Acme."""
    db.add_all([
        Category(title="Tools"),
        Category(title="Garden"),
        Colour(colour="red"),
        Colour(colour="blue"),
        Supplier(name="Acme"),
        Supplier(name="Acme"),
    ])
    db.commit()
    return db
