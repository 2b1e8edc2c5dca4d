"""Shared feature builders for the test suite."""

from topology_pipeline import FeaturePath

UNIT_SQUARE = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0), (0.0, 0.0)]
RIGHT_SQUARE = [(1.0, 0.0), (2.0, 0.0), (2.0, 1.0), (1.0, 1.0), (1.0, 0.0)]


def ring(coords, hole=False):
    return FeaturePath(coordinates=coords, closed=True, hole=hole)


def line(coords):
    return FeaturePath(coordinates=coords, closed=False)
