"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from authgate.core.config import BaseConfig, get_config, validate_config
from authgate.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config class/object; defaults to the one named by ``APP_ENV``.
    :raises RuntimeError: When the loaded settings are unsafe to serve with.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    validate_config(app.config)

    configure_logging(
        app.config.get("LOG_LEVEL", "INFO"),
        log_dir=app.config.get("LOG_DIR"),
        retention_days=app.config.get("LOG_RETENTION_DAYS", 14),
    )

    # Proxy headers if running behind a reverse proxy
    from authgate.core import proxy

    proxy.init_app(app)

    from authgate.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from authgate.core import cors

    cors.init_app(app)

    from authgate.api import init_app as init_api

    init_api(app)

    from authgate.core import errors

    errors.init_app(app)

    from authgate import cli as app_cli

    app_cli.init_app(app)

    return app
