"""Domain-level errors."""


class InvalidStatusTransitionError(ValueError):
    """Raised when an entity is asked to move backwards or out of a terminal status."""

    def __init__(self, entity: str, current: str, target: str) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot transition from {current} to {target}")
