"""Exceptions raised by the grading engine."""


class GradingError(Exception):
    """Base exception for grading engine errors."""

    pass


class ConfigurationError(GradingError):
    """Grading configuration could not be loaded or is malformed."""

    pass


class ConfigLockedError(GradingError):
    """A locked configuration rule was modified without being unlocked first."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} is locked. Unlock it before making changes.")


class EmptySampleError(GradingError):
    """A statistic that needs at least one value was asked of an empty sample."""

    pass


class CycleAlreadyCommittedError(GradingError):
    """Aggregates for a cycle were already committed."""

    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__(f"Cycle '{cycle_id}' is already committed. Use recommit to replace it.")


class ResultProcessingError(GradingError):
    """Base exception for result processing errors."""

    pass
