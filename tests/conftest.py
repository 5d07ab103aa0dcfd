from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ts_interface_generator import ProjectConfig, load_style_sheet


@pytest.fixture
def config() -> ProjectConfig:
    """Project configuration backed by the bundled style sheet."""
    return ProjectConfig(style=load_style_sheet())


@pytest.fixture
def generated_at() -> datetime:
    return datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)
