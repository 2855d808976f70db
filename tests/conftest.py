"""Shared fixtures for OrthoSketch tests."""

import pytest

from orthosketch.config import reset_config
from orthosketch.models import Point2D, Sketch


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Give every test default configuration, unaffected by the environment."""
    for name in ("ORTHOSKETCH_WORKING_PRECISION", "ORTHOSKETCH_DISTANCE_TOLERANCE"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def rectangle_data():
    """A 40 x 20 parametric rectangle v1 -> v2 -> v3 -> v4 -> v1, height 5."""
    return {
        "params": {"w": 40, "h": 20, "t": 5},
        "geometry": {
            "vertices": {
                "v1": {"x": 0, "y": 0},
                "v2": {"x": "params.w", "y": 0},
                "v3": {"x": "params.w", "y": "params.h"},
                "v4": {"x": 0, "y": "params.h"},
            },
            "contours": [
                {
                    "id": "p1",
                    "type": "outer",
                    "closed": True,
                    "elements": [
                        {"type": "line", "from": "v1", "to": "v2"},
                        {"type": "line", "from": "v2", "to": "v3"},
                        {"type": "line", "from": "v3", "to": "v4"},
                        {"type": "line", "from": "v4", "to": "v1"},
                    ],
                }
            ],
            "extrusion": {"height": "params.t", "bevel": False},
        },
    }


@pytest.fixture
def rectangle_sketch(rectangle_data):
    """The rectangle as a parsed Sketch."""
    return Sketch.model_validate(rectangle_data)


@pytest.fixture
def rectangle_points():
    """Evaluated corners of the rectangle."""
    return {
        "v1": Point2D(x=0, y=0),
        "v2": Point2D(x=40, y=0),
        "v3": Point2D(x=40, y=20),
        "v4": Point2D(x=0, y=20),
    }
