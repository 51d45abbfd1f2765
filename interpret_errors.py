class TreeInterpretError(Exception):
    """Base class for errors raised while interpreting tree ensembles."""


class IndexOutOfRange(TreeInterpretError, IndexError):
    """A requested row index lies outside the input rows."""


class NodeNotFound(TreeInterpretError, LookupError):
    """A tree, leaf or parent id does not resolve in the exported topology."""

    def __init__(self, message: str, tree_index: int | None = None, node_id: int | None = None) -> None:
        super().__init__(message)
        self.tree_index = tree_index
        self.node_id = node_id


class ShapeMismatch(TreeInterpretError, ValueError):
    """Leaf-index output does not match the shape implied by the topology."""


class MalformedTopology(TreeInterpretError, ValueError):
    """Exported topology rows cannot form a valid tree."""
