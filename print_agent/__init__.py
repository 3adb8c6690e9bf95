"""
Print Agent package

This module provides an application factory with minimal wiring:
- Configures logging (print_agent.core.logging)
- Builds one immutable RenderConfig and a RenderPipeline shared by requests
- Registers the API and health blueprints
"""

from __future__ import annotations

import importlib
import os
import uuid
from collections.abc import Sequence
from typing import Optional

from flask import Flask, g

from print_agent.core.config import RenderConfig, load_render_config
from print_agent.core.logging import configure_logging


def _register_blueprint(app: Flask, import_path: str, attr: str) -> None:
    mod = importlib.import_module(import_path)
    app.register_blueprint(getattr(mod, attr))
    app.logger.debug(f"Registered blueprint: {import_path}.{attr}")


def _set_request_id() -> None:
    """
    Assign a request ID for logging if not set by a filter elsewhere.
    """
    g.request_id = getattr(g, "request_id", uuid.uuid4().hex)


def create_app(
    config_overrides: Optional[dict] = None,
    render_config: Optional[RenderConfig] = None,
    pipeline=None,
    blueprints: Optional[Sequence[tuple[str, str]]] = None,
) -> Flask:
    """
    Application factory.

    Parameters:
    - config_overrides: values to inject into app.config after defaults
    - render_config: RenderConfig to use; loaded from the saved config and env if None
    - pipeline: prebuilt RenderPipeline (tests inject one with a fake render engine)
    - blueprints: optional list of (import_path, attribute) tuples to register

    Returns:
    - Flask app instance
    """
    from print_agent.printing.pipeline import RenderPipeline

    configure_logging()

    app = Flask("print_agent")
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("PRINTAGENT_MAX_CONTENT_LENGTH", 1024 * 1024))  # 1 MiB
    app.config["PRINTER_TIMEOUT"] = float(os.environ.get("PRINTAGENT_PRINTER_TIMEOUT", 10))
    app.url_map.strict_slashes = False

    if pipeline is None:
        pipeline = RenderPipeline(render_config or load_render_config())
    app.extensions["print_agent"] = pipeline
    app.logger.info("Print Agent app created")

    @app.before_request
    def _before_request():
        _set_request_id()

    default_blueprints = [
        ("print_agent.web.health", "health_bp"),
        ("print_agent.web.api", "api_bp"),
    ]
    for import_path, attr in blueprints or default_blueprints:
        _register_blueprint(app, import_path, attr)

    if config_overrides:
        app.config.update(config_overrides)

    return app


__all__ = ["create_app"]
