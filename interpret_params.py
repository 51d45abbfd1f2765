from dataclasses import dataclass


@dataclass
class InterpretParams:
    # None or <= 0 means "use the complete/best iteration count".
    num_iteration: int | None = None

    # Configured maximum tree depth of the model. None or <= 0 (no limit)
    # bounds a path only by the number of internal nodes in its tree.
    max_depth: int | None = None

    n_jobs: int = 1

    def __post_init__(self) -> None:
        if self.num_iteration is not None and self.num_iteration <= 0:
            self.num_iteration = None
        if self.max_depth is not None and self.max_depth <= 0:
            self.max_depth = None
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be >= 1")
