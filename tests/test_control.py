import asyncio
import base64

from conftest import ADMIN_PASSWORD

from cyber_chase.control import ADMIN, COMPANY, Principal


def admin_principal(control):
    principal = Principal()
    response = asyncio.run(
        control.handle(principal, "admin.login", {"username": "admin", "password": ADMIN_PASSWORD})
    )
    assert response == {"ok": True, "result": {"role": ADMIN}}
    return principal


def company_principal(control, mailer, email="acme@example.com"):
    principal = Principal()
    response = asyncio.run(
        control.handle(
            principal, "company.login", {"email": email, "password": mailer.password_for(email)}
        )
    )
    assert response["ok"], response
    return principal


def test_actions_require_sign_in(control):
    response = asyncio.run(control.handle(Principal(), "contest.list", {}))

    assert response == {"ok": False, "error": "Sign in first", "kind": "unauthorized"}


def test_admin_login_rejects_wrong_password(control):
    principal = Principal()
    response = asyncio.run(
        control.handle(principal, "admin.login", {"username": "admin", "password": "guess"})
    )

    assert response["kind"] == "unauthorized"
    assert principal.role is None


def test_admin_runs_contest_and_companies(control, mailer):
    principal = admin_principal(control)

    async def scenario():
        created = await control.handle(principal, "contest.create", {"name": "Spring Chase"})
        contest_id = created["result"]["id"]
        started = await control.handle(principal, "contest.start", {"contest_id": contest_id})
        company = await control.handle(
            principal,
            "company.create",
            {"name": "Acme", "email": "acme@example.com", "location": "https://maps.example.com/acme"},
        )
        listed = await control.handle(principal, "company.list", {})
        return started, company, listed

    started, company, listed = asyncio.run(scenario())

    assert started["result"]["status"] == "active"
    assert company["ok"]
    assert "password_hash" not in company["result"]
    assert [c["name"] for c in listed["result"]] == ["Acme"]
    assert mailer.password_for("acme@example.com")


def test_missing_parameter_is_invalid_input(control):
    principal = admin_principal(control)

    response = asyncio.run(control.handle(principal, "contest.start", {}))

    assert response == {
        "ok": False,
        "error": "Missing parameter: contest_id",
        "kind": "invalid_input",
    }


def test_company_cannot_run_organizer_actions(control, mailer, arena):
    principal = company_principal(control, mailer)
    assert principal.role == COMPANY

    response = asyncio.run(control.handle(principal, "contest.start", {"contest_id": arena.contest.id}))

    assert response["kind"] == "unauthorized"


def test_company_uploads_and_downloads_task_file(control, mailer, arena):
    principal = company_principal(control, mailer)
    upload = {"filename": "clue.txt", "content": base64.b64encode(b"under the bench").decode("ascii")}

    async def scenario():
        created = await control.handle(
            principal,
            "task.create",
            {"contest_id": arena.contest.id, "correct_answer": "bench", "file": upload},
        )
        task_id = created["result"]["id"]
        downloaded = await control.handle(principal, "task.file", {"task_id": task_id})
        listed = await control.handle(principal, "task.list", {})
        return created, downloaded, listed

    created, downloaded, listed = asyncio.run(scenario())

    assert created["result"]["question_file"] == "clue.txt"
    assert base64.b64decode(downloaded["result"]["content"]) == b"under the bench"
    assert len(listed["result"]) == 3


def test_task_upload_must_be_base64(control, mailer, arena):
    principal = company_principal(control, mailer)

    response = asyncio.run(
        control.handle(
            principal,
            "task.create",
            {
                "contest_id": arena.contest.id,
                "correct_answer": "x",
                "file": {"filename": "a.txt", "content": "not base64!"},
            },
        )
    )

    assert response["kind"] == "invalid_input"


def test_company_approves_waiting_team(control, workflow, mailer, repos, arena):
    asyncio.run(workflow.join_contest(arena.team.id))
    principal = company_principal(control, mailer)

    response = asyncio.run(control.handle(principal, "team.approve", {"team_id": arena.team.id}))

    assert response["ok"]
    team = asyncio.run(repos.teams.get_by_id(arena.team.id))
    assert team.current_company_id == arena.company.id


def test_logout_drops_the_role(control):
    principal = admin_principal(control)

    asyncio.run(control.handle(principal, "logout", {}))

    assert principal.role is None
    assert asyncio.run(control.handle(principal, "contest.list", {}))["kind"] == "unauthorized"
