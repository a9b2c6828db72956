class ImportGraphError(Exception):
    """Base class for errors raised while building or rendering import graphs."""


class ConsistencyError(ImportGraphError):
    """Raised when captured import data references something that was never recorded.

    This means the interceptor handed over malformed input, so graph
    construction aborts instead of guessing.
    """


class NotFoundError(ImportGraphError, KeyError):
    """Raised by renderer lookups when an edge points at an unknown node.

    Renderers catch it and emit a NOT FOUND row for that node only.
    """

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"{self.node_id} - NOT FOUND"
