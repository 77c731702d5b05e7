"""
Pytest configuration: default runs most tests; use --run-slow to include slow tests.
"""

import io
from pathlib import Path

import pytest
from PIL import Image

from huiben.core.config import TRANSPORT_EMBEDDED, Config


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (real seedream / banana_pro calls). Default: skip them.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-slow", False):
        return
    skip_slow = pytest.mark.skip(reason="Slow test; run with --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def embedded_config(tmp_path: Path) -> Config:
    """Embedded-transport config whose data lives under tmp_path."""
    return Config(
        transport=TRANSPORT_EMBEDDED,
        data_dir=tmp_path / "data",
        download_dir=tmp_path / "out",
        progress_interval=0.01,
    )


@pytest.fixture
def png_bytes() -> bytes:
    """A tiny valid PNG."""
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()
