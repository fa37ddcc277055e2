"""Progress tracking module.

Provides:
- Idempotent lesson completion per enrollment
- Completion percentage
- The assessment gate (all lessons completed)
"""

from .models import PROGRESS_TABLES_CQL, ProgressRecord


__all__ = [
    "PROGRESS_TABLES_CQL",
    "ProgressRecord",
]
