"""
Adapters layer - Schedule sources and storage backends.
"""

from .memory_store import InMemoryScheduleStore
from .schedule_sources import ScheduleSources
from .sql_store import SqlScheduleStore

__all__ = ["InMemoryScheduleStore", "ScheduleSources", "SqlScheduleStore"]
