"""Tests for AccessResolver."""
import pytest
from bson import ObjectId

USER_ID = str(ObjectId())
TASK_ID = str(ObjectId())
PROJECT_ID = str(ObjectId())


def setup_db(mock_db, role="user", team_id=None):
    """A user and a task, with every access rule failing by default."""
    mock_db["users"].find_one.return_value = {"_id": ObjectId(USER_ID), "name": "Bob", "role": role}
    mock_db["tasks"].find_one.return_value = {
        "_id": ObjectId(TASK_ID),
        "name": "Build API",
        "project_id": PROJECT_ID,
        "team_id": team_id,
    }
    mock_db["task_assignments"].find_one.return_value = None
    mock_db["team_members"].find_one.return_value = None
    mock_db["teams"].distinct.return_value = []
    mock_db["tasks"].distinct.return_value = [ObjectId(TASK_ID)]
    mock_db["time_entries"].find_one.return_value = None


@pytest.mark.asyncio
class TestAccessResolverRules:
    """Tests for the individual rules and their order."""

    async def test_privileged_role_short_circuits(self, mock_db):
        """Test admins are allowed without any lookups."""
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db, role="admin")

        resolver = AccessResolver(mock_db)

        assert await resolver.resolve(USER_ID, TASK_ID) == "privileged_role"
        mock_db["task_assignments"].find_one.assert_not_called()

    async def test_developer_is_privileged(self, mock_db):
        """Test developers are allowed like admins."""
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db, role="developer")

        assert await AccessResolver(mock_db).resolve(USER_ID, TASK_ID) == "privileged_role"

    async def test_direct_assignment_wins_before_team_rules(self, mock_db):
        """Test a direct assignment is reported and later rules never run."""
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db, team_id="team1")
        mock_db["task_assignments"].find_one.return_value = {"task_id": TASK_ID, "user_id": USER_ID}
        mock_db["team_members"].find_one.return_value = {"team_id": "team1", "user_id": USER_ID}

        resolver = AccessResolver(mock_db)

        assert await resolver.resolve(USER_ID, TASK_ID) == "direct_assignment"
        mock_db["team_members"].find_one.assert_not_called()
        mock_db["time_entries"].find_one.assert_not_called()

    async def test_task_team_membership(self, mock_db):
        """Test membership in the task's team allows."""
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db, team_id="team1")
        mock_db["team_members"].find_one.return_value = {"team_id": "team1", "user_id": USER_ID, "role": "member"}

        assert await AccessResolver(mock_db).resolve(USER_ID, TASK_ID) == "task_team_member"

    async def test_project_team_membership_for_teamless_task(self, mock_db):
        """Test a team-less task falls back to the project's teams."""
        from timeledger.services.access_service import AccessResolver

        team_id = ObjectId()
        setup_db(mock_db)
        mock_db["teams"].distinct.return_value = [team_id]
        mock_db["team_members"].find_one.return_value = {"team_id": str(team_id), "user_id": USER_ID}

        resolver = AccessResolver(mock_db)

        assert await resolver.resolve(USER_ID, TASK_ID) == "project_team_member"
        query = mock_db["team_members"].find_one.call_args[0][0]
        assert query["team_id"] == {"$in": [str(team_id)]}

    async def test_historical_time_entry_suffices(self, mock_db):
        """Test time logged on any task of the project allows."""
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db)
        mock_db["time_entries"].find_one.return_value = {"_id": ObjectId(), "user_id": USER_ID}

        resolver = AccessResolver(mock_db)

        assert await resolver.resolve(USER_ID, TASK_ID) == "historical_time_entry"
        query = mock_db["time_entries"].find_one.call_args[0][0]
        assert {"project_id": {"$in": [TASK_ID]}} in query["$or"]

    async def test_no_rule_denies(self, mock_db):
        """Test a user with no connection to the task is denied."""
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db)

        resolver = AccessResolver(mock_db)

        assert await resolver.resolve(USER_ID, TASK_ID) is None
        assert await resolver.can_act(USER_ID, TASK_ID) is False


@pytest.mark.asyncio
class TestAccessResolverOutcomes:
    """Tests for the decision helpers."""

    async def test_decide_reports_rule(self, mock_db):
        """Test the decision carries the granting rule."""
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db)
        mock_db["task_assignments"].find_one.return_value = {"task_id": TASK_ID, "user_id": USER_ID}

        decision = await AccessResolver(mock_db).decide(USER_ID, TASK_ID)

        assert decision.allowed is True
        assert decision.rule == "direct_assignment"

    async def test_require_raises_on_denial(self, mock_db):
        """Test require turns a denial into an authorization error."""
        from timeledger.errors import AuthorizationError
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db)

        with pytest.raises(AuthorizationError):
            await AccessResolver(mock_db).require(USER_ID, TASK_ID)

    async def test_unknown_task(self, mock_db):
        """Test a missing task is not found rather than denied."""
        from timeledger.errors import NotFoundError
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db)
        mock_db["tasks"].find_one.return_value = None

        with pytest.raises(NotFoundError, match="Task not found"):
            await AccessResolver(mock_db).resolve(USER_ID, TASK_ID)

    async def test_unknown_user(self, mock_db):
        """Test a missing user is not found."""
        from timeledger.errors import NotFoundError
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db)
        mock_db["users"].find_one.return_value = None

        with pytest.raises(NotFoundError, match="User not found"):
            await AccessResolver(mock_db).resolve(USER_ID, TASK_ID)

    async def test_custom_rule_order(self, mock_db):
        """Test the chain can be extended with further rules."""
        from timeledger.services.access_service import AccessResolver

        setup_db(mock_db)

        async def everyone(user, task):
            return True

        resolver = AccessResolver(mock_db)
        resolver.rules.append(("everyone", everyone))

        assert await resolver.resolve(USER_ID, TASK_ID) == "everyone"
