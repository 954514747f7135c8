from .schedule_evaluator import ScheduleEvaluator
from .scheduler import Scheduler

__all__ = ["ScheduleEvaluator", "Scheduler"]
