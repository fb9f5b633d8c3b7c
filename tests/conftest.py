"""Pytest fixtures for family store and tree tests."""

import pytest

from database import create_database, create_family
from models import Member, Relationship


def make_members(*names, **birth_years) -> list[Member]:
    """Members with ids 1..n in argument order."""
    return [
        Member(id=i, family_id=1, name=name, birth_year=birth_years.get(name))
        for i, name in enumerate(names, start=1)
    ]


def make_links(*pairs) -> list[Relationship]:
    """Parent->child edges from (parent_id, child_id) pairs."""
    return [
        Relationship(id=i, family_id=1, parent_id=parent, child_id=child)
        for i, (parent, child) in enumerate(pairs, start=1)
    ]


@pytest.fixture
def conn():
    """In-memory database with all tables."""
    connection = create_database(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def family(conn):
    """A family created by account 'user-1', whose first member is 'Grandma Rose'."""
    return create_family(conn, "The Roses", "user-1", "Grandma Rose")
