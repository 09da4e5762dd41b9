from .manager import CompetitionManager
from .lifecycle import StatusLifecycleManager, compute_statuses, determine_status
from .scheduler import StatusSweepScheduler

__all__ = [
    "CompetitionManager",
    "StatusLifecycleManager",
    "StatusSweepScheduler",
    "compute_statuses",
    "determine_status"
]
