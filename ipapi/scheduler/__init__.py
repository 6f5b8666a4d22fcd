"""
Background scheduling of periodic data refreshes.
"""
from .coordinator import RefreshCoordinator, Refreshable, ScheduledJob

__all__ = [
    "RefreshCoordinator",
    "Refreshable",
    "ScheduledJob",
]
