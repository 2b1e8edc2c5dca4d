import pytest

from shapes import RIGHT_SQUARE, UNIT_SQUARE, line, ring

from topology_pipeline import Feature


@pytest.fixture
def two_squares():
    """Two unit squares sharing the edge x=1."""
    return [
        Feature(id="left", properties={"name": "left"}, paths=[ring(UNIT_SQUARE)]),
        Feature(id="right", properties={"name": "right"}, paths=[ring(RIGHT_SQUARE)]),
    ]


@pytest.fixture
def single_ring():
    return [Feature(id=1, paths=[ring(UNIT_SQUARE)])]


@pytest.fixture
def triangle():
    return [Feature(id="tri", paths=[ring([(0.0, 0.0), (2.0, 0.0), (0.0, 2.0), (0.0, 0.0)])])]


@pytest.fixture
def square_with_hole():
    outer = [(0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 4.0), (0.0, 0.0)]
    hole = [(1.0, 1.0), (1.0, 3.0), (3.0, 3.0), (3.0, 1.0), (1.0, 1.0)]
    return [Feature(id="donut", paths=[ring(outer), ring(hole, hole=True)])]


@pytest.fixture
def crossing_lines():
    """Two open lines crossing at a shared vertex (0, 0)."""
    return [
        Feature(id="h", paths=[line([(-1.0, 0.0), (0.0, 0.0), (1.0, 0.0)])]),
        Feature(id="v", paths=[line([(0.0, -1.0), (0.0, 0.0), (0.0, 1.0)])]),
    ]
