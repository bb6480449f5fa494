"""cadence: human-readable schedules driven by a shared tick loop.

Public API:
- SchedulerContext: Owns the tick timer and broadcast channel
- Task: Timing expressions plus the work to run when due
- SchedulerSettings: Tick interval, time bias, unknown-expression policy

Errors:
- ExpressionParseError, NoCandidateError, MissingCallbackError,
  UninitializedTaskError (all SchedulingError)
"""

from cadence.config.models import SchedulerSettings
from cadence.errors import (
    ExpressionParseError,
    MissingCallbackError,
    NoCandidateError,
    SchedulingError,
    UninitializedTaskError,
)
from cadence.events import EventChannel, Subscription
from cadence.scheduler import TICK, SchedulerContext, SchedulerState
from cadence.task import CallbackJob, Task, TaskJob

__all__ = [
    "TICK",
    "CallbackJob",
    "EventChannel",
    "ExpressionParseError",
    "MissingCallbackError",
    "NoCandidateError",
    "SchedulerContext",
    "SchedulerSettings",
    "SchedulerState",
    "SchedulingError",
    "Subscription",
    "Task",
    "TaskJob",
    "UninitializedTaskError",
]
