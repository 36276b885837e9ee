from .events import EventBus
from .scheduler import Scheduler, run_scheduler

__all__ = ["EventBus", "Scheduler", "run_scheduler"]
