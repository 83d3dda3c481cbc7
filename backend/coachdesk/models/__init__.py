from coachdesk.models.user import User
from coachdesk.models.profile import Profile, Role
from coachdesk.models.pair import CoachStudentPair
from coachdesk.models.task import Task, TaskStatus, TaskType
from coachdesk.models.reward import Reward
from coachdesk.models.message import Message

__all__ = [
    "User",
    "Profile",
    "Role",
    "CoachStudentPair",
    "Task",
    "TaskStatus",
    "TaskType",
    "Reward",
    "Message",
]
