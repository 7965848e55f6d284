from .database import HookitDB, normalize_database_url
from .models import ExecutionRow, StepRow, WorkflowRow

__all__ = [
    "ExecutionRow",
    "HookitDB",
    "StepRow",
    "WorkflowRow",
    "normalize_database_url",
]
