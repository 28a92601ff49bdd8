"""Shared pytest fixtures for the full EchoPaths test suite."""

from __future__ import annotations

import pytest

from echopaths.models.datatypes import RouteDetails
from tests.fakes import make_route


@pytest.fixture
def route_150s() -> RouteDetails:
    """Provide a 150 second walking route, planned as three segments."""

    return make_route(duration_seconds=150)
