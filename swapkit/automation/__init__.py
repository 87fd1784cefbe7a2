"""
Automation module for SwapKit.

Recurring swaps on cron schedules and condition-driven triggers.
"""

from swapkit.automation.schedule import CronSchedule, IntervalSchedule
from swapkit.automation.registry import TimedRegistry
from swapkit.automation.scheduler import Scheduler
from swapkit.automation.triggers import TriggerMonitor

__all__ = [
    "CronSchedule",
    "IntervalSchedule",
    "TimedRegistry",
    "Scheduler",
    "TriggerMonitor",
]
