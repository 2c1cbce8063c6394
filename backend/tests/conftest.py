"""Shared fixtures: one app per run, one rolled-back transaction per test.

Tables live in an in-memory SQLite database held open by a single
connection. Each test runs inside an outer transaction on that connection;
the session joins it with ``join_transaction_mode="create_savepoint"`` so
the commits and rollbacks issued by services only move savepoints, and the
outer rollback at teardown discards everything.
"""

from __future__ import annotations

import os

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

from authgate.core.config import TestingConfig
from authgate.core.extensions import db as _db
from authgate.factory import create_app
from tests.factories import bind_session

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-fedcba9876543210"


class TestConfig(TestingConfig):
    """Fixed secrets and fake Google credentials; OAuth HTTP is mocked."""

    SECRET_KEY = "test-flask-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS: dict = {}
    JWT_ACCESS_SECRET = ACCESS_SECRET
    JWT_REFRESH_SECRET = REFRESH_SECRET
    JWT_ACCESS_EXPIRY = "15m"
    JWT_REFRESH_EXPIRY = "7d"
    COOKIE_SECURE = False
    LOG_LEVEL = "WARNING"
    LOG_DIR = None
    GOOGLE_CLIENT_ID = "test-client-id"
    GOOGLE_CLIENT_SECRET = "test-client-secret"
    OAUTH_REDIRECT_URI = "http://localhost/api/v1/auth/oauth/google/callback"


@pytest.fixture(scope="session")
def app():
    for name in ("DATABASE_URL", "DB_URL"):
        os.environ.pop(name, None)
    application = create_app(TestConfig)
    application.logger.setLevel("WARNING")
    return application


@pytest.fixture(scope="session")
def db(app):
    """Create the schema once; the app context is released right after."""
    with app.app_context():
        engine = _db.engine

        # pysqlite issues its own BEGIN and ignores SAVEPOINT otherwise
        @event.listens_for(engine, "connect")
        def _no_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin(conn):
            conn.exec_driver_sql("BEGIN")

        _db.create_all()
    yield _db
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(app, db):
    with app.app_context():
        conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture()
def session(app, db, connection):
    """``db.session`` replaced by a session joined to a per-test transaction.

    Each test runs in its own app context so ``flask.g`` starts empty.
    """
    outer = connection.begin()
    scoped = scoped_session(
        sessionmaker(bind=connection, join_transaction_mode="create_savepoint", autoflush=False)
    )

    with app.app_context():
        original = db.session
        db.session = scoped
        try:
            yield scoped
        finally:
            scoped.remove()
            db.session = original
            outer.rollback()


@pytest.fixture()
def client(app, session):
    return app.test_client()


@pytest.fixture(scope="session")
def codec(app):
    """The token codec built by the application factory."""
    return app.extensions["token_codec"]


@pytest.fixture(scope="session")
def faker():
    from faker import Faker

    Faker.seed(1337)
    return Faker()


@pytest.fixture(autouse=True)
def _factories_session(session):
    bind_session(session)
    yield
    bind_session(None)
