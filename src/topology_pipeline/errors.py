"""Exception taxonomy for the topology pipeline."""


class TopologyError(Exception):
    """Base class for all pipeline errors."""


class InvalidKeyError(TopologyError, KeyError):
    """Unjoin was asked to key on columns that some rows do not have."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return Exception.__str__(self)


class MalformedPathError(TopologyError):
    """A path is too short, or flagged closed without returning to its start."""

    def __init__(self, message: str, *, object_id: int | None = None, path_id: int | None = None):
        super().__init__(message)
        self.object_id = object_id
        self.path_id = path_id


class IncompleteTopologyError(TopologyError):
    """Arc tracing finished with edges that belong to no arc."""


class DegenerateRingError(TopologyError):
    """A ring cannot be ear-clipped (too few vertices, or no ear left)."""
