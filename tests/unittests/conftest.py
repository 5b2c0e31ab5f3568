from pathlib import Path

import pytest


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Automatically mark all tests collected in this directory as 'unittests'."""
    for item in items:
        if "unittests" in Path(str(item.fspath)).parts:
            item.add_marker("unittests")
