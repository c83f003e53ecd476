import asyncio

from cyber_chase.models import ConversationState
from cyber_chase.state_machine import (
    GET_TASK,
    JOIN_CONTEST,
    LOGOUT,
    SEND_GEO,
    SUBMIT_ANSWER,
    WELCOME,
)


async def sign_in(state_machine, mailer, user_id, email):
    await state_machine.handle_text(user_id, email)
    return await state_machine.handle_text(user_id, mailer.password_for(email))


async def reach_task(state_machine, workflow, mailer, arena, user_id="chat-1"):
    await sign_in(state_machine, mailer, user_id, "red@example.com")
    await state_machine.handle_button(user_id, JOIN_CONTEST)
    await state_machine.handle_button(user_id, SEND_GEO)
    await workflow.approve_team(arena.team.id, arena.company.id)
    await state_machine.await_approval(user_id)
    return await state_machine.handle_button(user_id, GET_TASK)


def button_data(reply):
    return [button.data for button in reply.buttons]


def test_start_shows_welcome(state_machine):
    reply = asyncio.run(state_machine.handle_text("chat-1", "/start"))

    assert reply.text == WELCOME
    assert state_machine.state_of("chat-1") == ConversationState.START


def test_registration_dialog(state_machine, mailer, repos):
    async def scenario():
        reply = await state_machine.handle_text("chat-1", "blue@example.com")
        assert state_machine.state_of("chat-1") == ConversationState.REGISTER_CONFIRM
        assert "Do you want to register?" in reply.text

        await state_machine.handle_text("chat-1", "Yes")
        assert state_machine.state_of("chat-1") == ConversationState.REGISTER_NAME

        await state_machine.handle_text("chat-1", "Blue Team")
        assert state_machine.state_of("chat-1") == ConversationState.REGISTER_EMAIL

        reply = await state_machine.handle_text("chat-1", "not-an-email")
        assert reply.text.startswith("Invalid email format")
        assert state_machine.state_of("chat-1") == ConversationState.REGISTER_EMAIL

        reply = await state_machine.handle_text("chat-1", "blue@example.com")
        assert reply.text.startswith("Registration successful!")
        assert state_machine.state_of("chat-1") == ConversationState.START
        team = await repos.teams.get_by_email("blue@example.com")
        assert team.name == "Blue Team"

    asyncio.run(scenario())


def test_register_command_and_declining(state_machine):
    async def scenario():
        await state_machine.handle_text("chat-1", "nobody@example.com")
        reply = await state_machine.handle_text("chat-1", "no")
        assert reply.text == "OK, send your email again:"
        assert state_machine.state_of("chat-1") == ConversationState.START

        await state_machine.handle_text("chat-1", "/register")
        assert state_machine.state_of("chat-1") == ConversationState.REGISTER_NAME

    asyncio.run(scenario())


def test_registration_failure_is_reported(state_machine, mailer):
    mailer.fail = True

    async def scenario():
        await state_machine.handle_text("chat-1", "/register")
        await state_machine.handle_text("chat-1", "Blue Team")
        return await state_machine.handle_text("chat-1", "blue@example.com")

    reply = asyncio.run(scenario())

    assert reply.text.startswith("Registration failed:")
    assert state_machine.state_of("chat-1") == ConversationState.START


def test_sign_in_with_wrong_password(state_machine, arena):
    async def scenario():
        await state_machine.handle_text("chat-1", "red@example.com")
        reply = await state_machine.handle_text("chat-1", "wrong")
        assert state_machine.state_of("chat-1") == ConversationState.EMAIL
        assert reply.text.startswith("Invalid email or password.")

        await state_machine.handle_text("chat-1", "red@example.com")
        assert state_machine.state_of("chat-1") == ConversationState.PASSWORD

    asyncio.run(scenario())


def test_sign_in_links_chat_and_shows_menu(state_machine, mailer, repos, arena):
    reply = asyncio.run(sign_in(state_machine, mailer, "chat-1", "red@example.com"))

    assert reply.text == "Signed in as team Red Team."
    assert button_data(reply) == [JOIN_CONTEST]
    assert state_machine.state_of("chat-1") == ConversationState.MENU
    team = asyncio.run(repos.teams.get_by_external_id("chat-1"))
    assert team.id == arena.team.id


def test_chat_cannot_switch_to_another_team(state_machine, workflow, mailer, arena):
    async def scenario():
        await workflow.register("blue@example.com", "Blue Team")
        await sign_in(state_machine, mailer, "chat-1", "red@example.com")
        await state_machine.handle_button("chat-1", LOGOUT)
        return await sign_in(state_machine, mailer, "chat-1", "blue@example.com")

    reply = asyncio.run(scenario())

    assert reply.text.startswith("Could not link this chat")
    assert state_machine.state_of("chat-1") == ConversationState.START


def test_buttons_require_sign_in(state_machine):
    reply = asyncio.run(state_machine.handle_button("chat-1", GET_TASK))
    assert reply.text == "Please sign in first. Send /start."


def test_buttons_are_gated_by_state(state_machine, mailer, arena):
    async def scenario():
        await sign_in(state_machine, mailer, "chat-1", "red@example.com")
        return await state_machine.handle_button("chat-1", GET_TASK)

    reply = asyncio.run(scenario())

    assert reply.text == "This action is not available right now."
    assert state_machine.state_of("chat-1") == ConversationState.MENU


def test_menu_commands(state_machine, mailer, arena):
    async def scenario():
        await sign_in(state_machine, mailer, "chat-1", "red@example.com")
        unknown = await state_machine.handle_text("chat-1", "hello")
        menu = await state_machine.handle_text("chat-1", "/menu")
        return unknown, menu

    unknown, menu = asyncio.run(scenario())

    assert unknown.text.startswith("Unknown command.")
    assert menu.text == "Main menu:"
    assert button_data(menu) == [JOIN_CONTEST]


def test_join_and_get_location(state_machine, mailer, arena):
    async def scenario():
        await sign_in(state_machine, mailer, "chat-1", "red@example.com")
        joined = await state_machine.handle_button("chat-1", JOIN_CONTEST)
        assert joined.text == "You have joined the contest: Spring Chase"
        assert state_machine.state_of("chat-1") == ConversationState.WAITING_GEO
        return await state_machine.handle_button("chat-1", SEND_GEO)

    reply = asyncio.run(scenario())

    assert "https://maps.example.com/acme" in reply.text
    assert state_machine.state_of("chat-1") == ConversationState.WAITING_APPROVE


def test_approval_wait_times_out(state_machine, mailer, arena):
    async def scenario():
        await sign_in(state_machine, mailer, "chat-1", "red@example.com")
        await state_machine.handle_button("chat-1", JOIN_CONTEST)
        await state_machine.handle_button("chat-1", SEND_GEO)
        return await state_machine.await_approval("chat-1")

    reply = asyncio.run(scenario())

    assert reply.text == "Waiting for approval timed out. Please try again later."
    assert state_machine.state_of("chat-1") == ConversationState.MENU


def test_approval_wait_stops_after_logout(state_machine, mailer, arena):
    async def scenario():
        await sign_in(state_machine, mailer, "chat-1", "red@example.com")
        await state_machine.handle_button("chat-1", JOIN_CONTEST)
        await state_machine.handle_button("chat-1", SEND_GEO)
        waiter = asyncio.create_task(state_machine.await_approval("chat-1"))
        await state_machine.handle_button("chat-1", LOGOUT)
        return await waiter

    assert asyncio.run(scenario()) is None


def test_approval_unlocks_tasks(state_machine, workflow, mailer, arena):
    async def scenario():
        await sign_in(state_machine, mailer, "chat-1", "red@example.com")
        await state_machine.handle_button("chat-1", JOIN_CONTEST)
        await state_machine.handle_button("chat-1", SEND_GEO)
        await workflow.approve_team(arena.team.id, arena.company.id)
        return await state_machine.await_approval("chat-1")

    reply = asyncio.run(scenario())

    assert reply.text == "Your team has been approved by the company!"
    assert button_data(reply) == [GET_TASK]
    assert state_machine.state_of("chat-1") == ConversationState.READY_FOR_TASK


def test_full_contest_run(state_machine, workflow, mailer, repos, arena):
    async def scenario():
        task_reply = await reach_task(state_machine, workflow, mailer, arena)
        assert task_reply.text == "Task:\n\nWhat is 2 + 2?\n\nTime: 5 minutes"
        assert button_data(task_reply) == [SUBMIT_ANSWER]

        prompt = await state_machine.handle_button("chat-1", SUBMIT_ANSWER)
        assert prompt.text == "Enter your answer:"
        wrong = await state_machine.handle_text("chat-1", "5")
        assert wrong.text == "Wrong answer. Attempts left: 2"
        assert state_machine.state_of("chat-1") == ConversationState.TASK_RECEIVED

        await state_machine.handle_button("chat-1", SUBMIT_ANSWER)
        right = await state_machine.handle_text("chat-1", " 4 ")
        assert right.text == "Correct answer!\n\nTask:\n\nCapital of France?"

        await state_machine.handle_button("chat-1", SUBMIT_ANSWER)
        done = await state_machine.handle_text("chat-1", "Paris")
        assert done.text == "Correct answer!\n\nAll tasks are complete. Well done!"
        assert button_data(done) == [LOGOUT]
        assert state_machine.state_of("chat-1") == ConversationState.ALL_TASKS_COMPLETE

        team = await repos.teams.get_by_id(arena.team.id)
        assert team.points == 2

        bye = await state_machine.handle_button("chat-1", LOGOUT)
        assert bye.text.startswith("You have signed out.")
        assert state_machine.state_of("chat-1") is None

    asyncio.run(scenario())


def test_late_answer_moves_on_to_next_task(state_machine, workflow, mailer, clock, repos, arena):
    async def scenario():
        await reach_task(state_machine, workflow, mailer, arena)
        await state_machine.handle_button("chat-1", SUBMIT_ANSWER)
        clock.advance(minutes=11)
        return await state_machine.handle_text("chat-1", "4")

    reply = asyncio.run(scenario())

    assert reply.text == "Time is up for this task.\n\nTask:\n\nCapital of France?"
    team = asyncio.run(repos.teams.get_by_id(arena.team.id))
    assert team.points == 0
    assert team.current_task_id == arena.tasks[1].id


def test_task_with_attachment(state_machine, workflow, company_service, file_store, mailer, arena):
    task_id = arena.tasks[0].id
    asyncio.run(company_service.update_task(arena.company.id, task_id, file=("clue.pdf", b"%PDF")))

    reply = asyncio.run(reach_task(state_machine, workflow, mailer, arena))

    assert reply.document == str(file_store.path(task_id, "clue.pdf"))


def wait_for_approval(state_machine, mailer):
    async def scenario():
        await sign_in(state_machine, mailer, "chat-1", "red@example.com")
        await state_machine.handle_button("chat-1", JOIN_CONTEST)
        await state_machine.handle_button("chat-1", SEND_GEO)

    asyncio.run(scenario())


def test_approval_wait_survives_storage_errors(
    state_machine, workflow, mailer, arena, monkeypatch
):
    wait_for_approval(state_machine, mailer)
    real_get_team = workflow.get_team
    calls = []

    async def flaky_get_team(team_id):
        calls.append(team_id)
        if len(calls) == 1:
            raise ValueError("Unterminated string in teams.json")
        return await real_get_team(team_id)

    asyncio.run(workflow.approve_team(arena.team.id, arena.company.id))
    monkeypatch.setattr(workflow, "get_team", flaky_get_team)

    reply = asyncio.run(state_machine.await_approval("chat-1"))

    assert len(calls) == 2
    assert reply.text == "Your team has been approved by the company!"
    assert state_machine.state_of("chat-1") == ConversationState.READY_FOR_TASK


def test_approval_wait_times_out_when_storage_keeps_failing(
    state_machine, workflow, mailer, arena, monkeypatch
):
    wait_for_approval(state_machine, mailer)

    async def broken_get_team(team_id):
        raise OSError("disk unavailable")

    monkeypatch.setattr(workflow, "get_team", broken_get_team)

    reply = asyncio.run(state_machine.await_approval("chat-1"))

    assert reply.text == "Waiting for approval timed out. Please try again later."
    assert state_machine.state_of("chat-1") == ConversationState.MENU


def test_approval_wait_keeps_state_changed_during_last_check(
    state_machine, workflow, session_store, mailer, arena, monkeypatch
):
    wait_for_approval(state_machine, mailer)
    real_get_team = workflow.get_team
    calls = []

    async def get_team_while_user_restarts(team_id):
        calls.append(team_id)
        if len(calls) == state_machine.approval_attempts:
            # /start arrives while the last check is in flight
            session_store.get("chat-1").state = ConversationState.EMAIL
        return await real_get_team(team_id)

    monkeypatch.setattr(workflow, "get_team", get_team_while_user_restarts)

    reply = asyncio.run(state_machine.await_approval("chat-1"))

    assert reply is None
    assert state_machine.state_of("chat-1") == ConversationState.EMAIL
