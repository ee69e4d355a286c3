import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_metalcloud_env(monkeypatch):
    """Keep METALCLOUD_* variables of the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("METALCLOUD_"):
            monkeypatch.delenv(name, raising=False)
