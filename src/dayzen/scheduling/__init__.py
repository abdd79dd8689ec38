"""Scheduling: reminder model, categorizer, grouping and the two trigger channels."""

from dayzen.scheduling.categorize import Categorized, categorize
from dayzen.scheduling.dispatcher import Dispatcher, admits_intrusive, admits_regular
from dayzen.scheduling.grouping import TriggerGroup, TriggerGroups, group
from dayzen.scheduling.reminders import (
    Reminder,
    ReminderNotFoundError,
    ReminderStore,
    ValidationError,
)
from dayzen.scheduling.service import ReminderService

__all__ = [
    "Categorized",
    "Dispatcher",
    "Reminder",
    "ReminderNotFoundError",
    "ReminderService",
    "ReminderStore",
    "TriggerGroup",
    "TriggerGroups",
    "ValidationError",
    "admits_intrusive",
    "admits_regular",
    "categorize",
    "group",
]
