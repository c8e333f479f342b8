"""ORM models exposed for metadata discovery."""
from slotwise.db.models.agent_action_log import AgentActionLog
from slotwise.db.models.learned_preference import LearnedPreference
from slotwise.db.models.schedule_conflict import ScheduleConflict
from slotwise.db.models.schedule_overlap import ScheduleOverlap
from slotwise.db.models.scheduled_task import ScheduledTask
from slotwise.db.models.task import Task
from slotwise.db.models.user import User
from slotwise.db.models.work_schedule import UserVacation, UserWorkSchedule

__all__ = [
    "AgentActionLog",
    "LearnedPreference",
    "ScheduleConflict",
    "ScheduleOverlap",
    "ScheduledTask",
    "Task",
    "User",
    "UserVacation",
    "UserWorkSchedule",
]
