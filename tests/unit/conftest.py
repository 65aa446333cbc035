"""Unit test hooks: everything under tests/unit is marked ``unit``."""

from pathlib import Path

import pytest


_UNIT_ROOT = Path(__file__).resolve().parent


def pytest_collection_modifyitems(config, items):
    for item in items:
        if _UNIT_ROOT in Path(str(item.fspath)).resolve().parents:
            item.add_marker(pytest.mark.unit)
