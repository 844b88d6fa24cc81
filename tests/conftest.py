from __future__ import annotations

import pytest

from fakes import ENVIRON, FakeClock, make_config
from genrelay_cli.gen.config import GenConfig


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def environ() -> dict[str, str]:
    return dict(ENVIRON)


@pytest.fixture
def config() -> GenConfig:
    return make_config()
