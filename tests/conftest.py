"""Pytest session bootstrap for this repository.

- Ensure the project root (containing the ``ollama_stream`` package) is importable
- Keep a developer's ``.env`` / shell settings from leaking into tests
"""

import os
import sys

import pytest

HERE = os.path.dirname(__file__)
ROOT = os.path.abspath(os.path.join(HERE, '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from fakes import RecordingSink  # noqa: E402
from ollama_stream.infrastructure.config import settings as settings_module  # noqa: E402

_ENV_PREFIXES = ("OLLAMA_", "CLI_", "CHAT_", "TOOLS_", "LOG_")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(HERE)
    monkeypatch.setattr(settings_module, "_settings", None)
    yield


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
