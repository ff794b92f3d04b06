from dataclasses import dataclass


@dataclass(frozen=True)
class Proposal:
    filename: str
    category: str


@dataclass(frozen=True)
class Skip:
    """File is left in place and retried on the next run."""
    reason: str


@dataclass(frozen=True)
class Fatal:
    """Run cannot continue."""
    error: Exception


@dataclass(frozen=True)
class Moved:
    new_name: str
    category: str
    folder_id: str
