from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from flask import current_app, has_app_context


class EnvironmentReader:
    """
    Resolves a named setting from the process environment first, then from the
    runtime mapping published to the browser (``window.__ENV__``), then the default.
    """

    def __init__(self, environ: Mapping[str, str] | None = None, runtime: Mapping[str, Any] | None = None) -> None:
        self.environ = os.environ if environ is None else environ
        self.runtime = runtime if runtime is not None else {}

    def get(self, key: str, default: str) -> str:
        value = self.environ.get(key)
        if value:
            return value
        runtime_value = self.runtime.get(key)
        if runtime_value is not None:
            return str(runtime_value)
        return default


def reader_for_app(app) -> EnvironmentReader:
    reader = app.extensions.get("env_reader")
    if reader is None:
        reader = EnvironmentReader(runtime=app.config.setdefault("RUNTIME_ENV", {}))
        app.extensions["env_reader"] = reader
    return reader


def get_environment_variable(key: str, default: str) -> str:
    if has_app_context():
        return reader_for_app(current_app).get(key, default)
    return EnvironmentReader().get(key, default)
