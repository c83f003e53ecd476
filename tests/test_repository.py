import asyncio
from datetime import timedelta

import pytest

from cyber_chase.config.settings import Settings
from cyber_chase.models import Task, Team, TeamTaskSession
from cyber_chase.repository import create_repositories


def test_team_durations_survive_storage(repos):
    team = Team(id="t1", name="Red", email="red@example.com", password_hash="x")
    team.total_duration = timedelta(minutes=4, seconds=30)
    team.points = 2
    asyncio.run(repos.teams.create(team))

    loaded = asyncio.run(repos.teams.get_by_id("t1"))

    assert loaded.total_duration == timedelta(minutes=4, seconds=30)
    assert loaded.points == 2
    assert loaded.created_at == team.created_at


def test_find_available_skips_excluded_and_foreign_tasks(repos):
    async def scenario():
        await repos.tasks.create(Task(id="a", contest_id="c1", company_id="co1", question="A", correct_answer="1"))
        await repos.tasks.create(Task(id="b", contest_id="c1", company_id="co2", question="B", correct_answer="2"))
        await repos.tasks.create(Task(id="c", contest_id="c1", company_id="co1", question="C", correct_answer="3"))
        first = await repos.tasks.find_available("c1", "co1", [])
        second = await repos.tasks.find_available("c1", "co1", ["a"])
        none_left = await repos.tasks.find_available("c1", "co1", ["a", "c"])
        return first, second, none_left

    first, second, none_left = asyncio.run(scenario())

    assert first.id == "a"
    assert second.id == "c"
    assert none_left is None


def test_used_task_ids_cover_every_session(repos, clock):
    async def scenario():
        for task_id in ("a", "b"):
            await repos.sessions.create(
                TeamTaskSession(id=task_id + "-s", team_id="t1", task_id=task_id, start_time=clock.now())
            )
        await repos.sessions.create(
            TeamTaskSession(id="other", team_id="t2", task_id="c", start_time=clock.now())
        )
        return await repos.sessions.get_used_task_ids("t1")

    assert sorted(asyncio.run(scenario())) == ["a", "b"]


def test_update_of_missing_row_fails(repos):
    team = Team(id="ghost", name="Ghost", email="ghost@example.com", password_hash="x")
    with pytest.raises(KeyError):
        asyncio.run(repos.teams.update(team))


def test_unknown_backend_is_rejected(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "redis")
    with pytest.raises(ValueError, match="Unknown storage backend"):
        create_repositories(Settings())


def test_supabase_backend_needs_credentials(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "supabase")
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_KEY", raising=False)
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        create_repositories(Settings())
