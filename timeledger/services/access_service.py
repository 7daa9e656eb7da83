"""Access resolver - decides whether a user may act on a task."""
import logging
from typing import Awaitable, Callable, Optional

from timeledger.errors import AuthorizationError, NotFoundError
from timeledger.models.task import AccessDecision
from timeledger.models.user import PRIVILEGED_ROLES, UserRole
from timeledger.utils.ids import parse_object_id

logger = logging.getLogger(__name__)

Predicate = Callable[[dict, dict], Awaitable[bool]]


class AccessResolver:
    """
    Ordered chain of access rules.

    Each rule is a ``(name, predicate)`` pair taking the user and task
    documents. Rules are evaluated in order and the first one that allows
    wins; later rules are never evaluated. No rule allowing means deny.
    """

    def __init__(self, db):
        """Initialize resolver with database connection."""
        self.db = db
        self.users = db["users"]
        self.tasks = db["tasks"]
        self.task_assignments = db["task_assignments"]
        self.teams = db["teams"]
        self.team_members = db["team_members"]
        self.time_entries = db["time_entries"]

        self.rules: list[tuple[str, Predicate]] = [
            ("privileged_role", self.has_privileged_role),
            ("direct_assignment", self.has_direct_assignment),
            ("task_team_member", self.is_task_team_member),
            ("project_team_member", self.is_project_team_member),
            ("historical_time_entry", self.has_historical_time_entry),
        ]

    async def has_privileged_role(self, user: dict, task: dict) -> bool:
        """Admins and developers may act on every task."""
        try:
            role = UserRole(user.get("role", UserRole.USER.value))
        except ValueError:
            return False
        return role in PRIVILEGED_ROLES

    async def has_direct_assignment(self, user: dict, task: dict) -> bool:
        assignment = await self.task_assignments.find_one({
            "task_id": str(task["_id"]),
            "user_id": str(user["_id"]),
        })
        return assignment is not None

    async def is_task_team_member(self, user: dict, task: dict) -> bool:
        """Membership (any role) in the team the task belongs to."""
        if not task.get("team_id"):
            return False
        membership = await self.team_members.find_one({
            "team_id": task["team_id"],
            "user_id": str(user["_id"]),
        })
        return membership is not None

    async def is_project_team_member(self, user: dict, task: dict) -> bool:
        """Membership in a team linked to the task's project, for team-less tasks."""
        if task.get("team_id"):
            return False
        team_ids = await self.teams.distinct("_id", {"project_id": task["project_id"]})
        if not team_ids:
            return False
        membership = await self.team_members.find_one({
            "team_id": {"$in": [str(team_id) for team_id in team_ids]},
            "user_id": str(user["_id"]),
        })
        return membership is not None

    async def has_historical_time_entry(self, user: dict, task: dict) -> bool:
        """Any time logged against a task of the same project grants access."""
        task_ids = await self.tasks.distinct("_id", {"project_id": task["project_id"]})
        task_ids = [str(task_id) for task_id in task_ids]
        entry = await self.time_entries.find_one({
            "user_id": str(user["_id"]),
            "$or": [
                {"task_id": {"$in": task_ids}},
                # Legacy entries addressed the task through project_id
                {"project_id": {"$in": task_ids}},
            ],
        })
        return entry is not None

    async def _load(self, user_id: str, task_id: str) -> tuple[dict, dict]:
        user = await self.users.find_one({"_id": parse_object_id(user_id, "user")})
        if not user:
            raise NotFoundError("User not found")
        task = await self.tasks.find_one({"_id": parse_object_id(task_id, "task")})
        if not task:
            raise NotFoundError("Task not found")
        return user, task

    async def resolve(self, user_id: str, task_id: str) -> Optional[str]:
        """
        Name of the first rule that allows the user to act on the task.

        Returns:
            Rule name, or None if access is denied

        Raises:
            NotFoundError: If the user or task doesn't exist
        """
        user, task = await self._load(user_id, task_id)

        for name, predicate in self.rules:
            if await predicate(user, task):
                logger.debug("User %s may act on task %s via %s", user_id, task_id, name)
                return name

        logger.debug("User %s denied on task %s", user_id, task_id)
        return None

    async def can_act(self, user_id: str, task_id: str) -> bool:
        """Whether the user may view or mutate the task."""
        return await self.resolve(user_id, task_id) is not None

    async def decide(self, user_id: str, task_id: str) -> AccessDecision:
        """Access outcome with the rule that granted it."""
        rule = await self.resolve(user_id, task_id)
        return AccessDecision(task_id=task_id, user_id=user_id, allowed=rule is not None, rule=rule)

    async def require(self, user_id: str, task_id: str) -> str:
        """
        Like ``resolve`` but raising on denial.

        Raises:
            AuthorizationError: If no rule allows the user
        """
        rule = await self.resolve(user_id, task_id)
        if rule is None:
            raise AuthorizationError("You do not have permission to act on this task")
        return rule
