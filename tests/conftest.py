"""
Shared pytest fixtures for the task tracker test suite.

Provides the Flask application, test client, database session, factories
for users and tasks, and two ready-made accounts (``user_one`` and
``user_two``) with open sessions, mirroring the data most tests need:
user one owns two tasks, user two owns one.

Key Concepts Demonstrated:
- Fixture scopes (session vs. function) for performance and isolation
- Factory fixtures for flexible test-data creation
- Database setup/teardown per test
- In-process RSA keys so no key files are needed to run the suite
"""

from __future__ import annotations

import os
from collections.abc import Callable

import pytest
from faker import Faker

from tests.helpers import DEFAULT_PASSWORD, TEST_PRIVATE_KEY, TEST_PUBLIC_KEY, auth_headers

# Set testing environment before the app is created
os.environ["FLASK_ENV"] = "testing"
os.environ["TEST_JWT_PRIVATE_KEY"] = TEST_PRIVATE_KEY
os.environ["TEST_JWT_PUBLIC_KEY"] = TEST_PUBLIC_KEY

from tracker_app import create_app, db
from tracker_app.auth import issue_token
from tracker_app.models import Task, User

fake = Faker()


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    """
    Create application instance for the test session.

    The same app instance is reused for all tests; isolation comes from
    ``db_session`` recreating the tables for every test.
    """
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """Provide a Flask test client scoped to a single test function."""
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Provide a clean database for each test function.

    Creates all tables before the test, then rolls back any uncommitted
    changes and drops all tables afterward.
    """
    with app.app_context():
        db.create_all()
        yield db
        db.session.rollback()
        db.drop_all()


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def user_factory(db_session) -> Callable[..., User]:
    """
    Factory fixture that creates and persists User records.

    Passwords are hashed exactly as signup does it.  Names and emails
    default to generated values so tests only pass what they assert on.
    """

    def _create_user(
        name: str | None = None,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
    ) -> User:
        user = User(
            name=name or fake.name(),
            email=email or f"{fake.unique.user_name()}@tasktracker.io",
        )
        user.set_password(password)
        db_session.session.add(user)
        db_session.session.commit()
        return user

    return _create_user


@pytest.fixture
def task_factory(db_session) -> Callable[..., Task]:
    """Factory fixture that creates Task rows owned by the given user."""

    def _create_task(
        owner: User,
        description: str | None = None,
        completed: bool = False,
        **columns,
    ) -> Task:
        task = Task(
            owner_id=owner.id,
            description=description or fake.sentence(nb_words=4),
            completed=completed,
            **columns,
        )
        db_session.session.add(task)
        db_session.session.commit()
        return task

    return _create_task


# -----------------------------------------------------------------------------
# Account Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def user_one(user_factory) -> User:
    return user_factory(name="Mike", email="mike@tasktracker.io", password="56what!!")


@pytest.fixture
def user_one_token(user_one) -> str:
    """Open a session for user one, exactly as login would."""
    return issue_token(user_one)


@pytest.fixture
def user_one_headers(user_one_token) -> dict[str, str]:
    return auth_headers(user_one_token)


@pytest.fixture
def user_two(user_factory) -> User:
    return user_factory(name="Jess", email="jess@tasktracker.io", password="myhouse099@@")


@pytest.fixture
def user_two_headers(user_two) -> dict[str, str]:
    return auth_headers(issue_token(user_two))


@pytest.fixture
def user_tasks(task_factory, user_one, user_two) -> dict[str, Task]:
    """
    Create the standard task set.

    ``one`` (open) and ``two`` (completed) belong to user one; ``three``
    (completed) belongs to user two.
    """
    return {
        "one": task_factory(user_one, description="First task", completed=False),
        "two": task_factory(user_one, description="Second task", completed=True),
        "three": task_factory(user_two, description="Third task", completed=True),
    }
