"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from flask import Flask
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, JWT and the token/identity adapters.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`authgate.models` package to ensure SQLAlchemy metadata is ready
        for migrations.

    Notes
    -----
    The engine (and its connection pool) is created once here by
    Flask-SQLAlchemy and shared by every request of the process. The token
    codec and the identity provider are built once and stored in
    ``app.extensions`` under ``"token_codec"`` and ``"identity_provider"``.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from authgate import models as _models  # noqa: F401

    migrate.init_app(app, db)

    # Protected routes verify the access cookie with the access secret
    app.config["JWT_SECRET_KEY"] = app.config["JWT_ACCESS_SECRET"]
    jwt.init_app(app)

    from authgate.infra.jwt.jwt_token_codec import JWTTokenCodec
    from authgate.infra.oauth.google_identity_provider import GoogleIdentityProvider

    app.extensions["token_codec"] = JWTTokenCodec.from_config(app.config)
    app.extensions["identity_provider"] = GoogleIdentityProvider.from_config(app.config)
