"""Tests for ConversationAgent: state gating, atomicity and ordering of sends."""

import anyio
import pytest

from core.analysis import prompts
from core.analysis.models import ProfileRecord, ReplyAdvice
from exceptions.exceptions import (
    AnalysisSchemaError,
    AnalysisTransportError,
    ConfigurationError,
    MissingProfileImageError,
)
from runtime.agents.conversation_agent import (
    CHAT_FAILURE_MESSAGE,
    PROFILE_FAILURE_MESSAGE,
    ConversationAgent,
    build_opener_advice,
)
from runtime.models.session_models import MessageRole, MessageType, SessionState
from runtime.store.log_store import LogStore
from runtime.store.session_store import SessionStore

from conftest import make_advice_payload, make_profile_payload


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def agent(store, fake_client) -> ConversationAgent:
    return ConversationAgent(session_store=store, analysis_client=fake_client, log_store=LogStore())


def _profile(**kwargs) -> ProfileRecord:
    return ProfileRecord.model_validate(make_profile_payload(**kwargs))


def _advice(**kwargs) -> ReplyAdvice:
    return ReplyAdvice.model_validate(make_advice_payload(**kwargs))


async def _establish(agent, fake_client, session_id, captured_image, profile=None):
    fake_client.profile_results.append(profile or _profile())
    await agent.send(session_id, text="hi", image=captured_image)


@pytest.mark.anyio
class TestProfileEstablishment:
    async def test_profile_send_appends_three_messages(self, agent, store, fake_client, captured_image):
        session_id = store.current_session_id
        fake_client.profile_results.append(_profile(name="Amy"))

        await agent.send(session_id, text="hi", image=captured_image)

        session = store.get_session(session_id)
        assert session.state == SessionState.PROFILE_ESTABLISHED
        assert session.active_profile.basic_info.name == "Amy"
        assert session.title == "Amy"
        assert [m.type for m in session.messages] == [
            MessageType.TEXT,
            MessageType.PROFILE_ANALYSIS,
            MessageType.CHAT_ADVICE,
        ]
        user = session.messages[0]
        assert user.role == MessageRole.USER
        assert user.content == "hi"
        assert user.image == captured_image.preview

    async def test_note_and_payload_reach_the_client(self, agent, store, fake_client, captured_image):
        await _establish(agent, fake_client, store.current_session_id, captured_image)

        call = fake_client.calls[0]
        assert call["op"] == "profile"
        assert call["image"] == captured_image.payload
        assert call["note"] == "hi"

    async def test_companion_advice_uses_opening_lines(self, agent, store, fake_client, captured_image):
        profile = _profile(name="Amy")
        await _establish(agent, fake_client, store.current_session_id, captured_image, profile)

        companion = store.get_session(store.current_session_id).messages[-1].chat_advice
        assert companion.suggestions == profile.opening_lines
        assert "Amy" in companion.situation_analysis
        assert companion.coach_tip == prompts.OPENER_COACH_TIP

    async def test_text_only_without_profile_is_rejected_locally(self, agent, store, fake_client):
        session_id = store.current_session_id

        await agent.send(session_id, text="what should I say?")

        session = store.get_session(session_id)
        assert fake_client.calls == []
        assert session.active_profile is None
        assert [m.type for m in session.messages] == [MessageType.TEXT, MessageType.ERROR]
        assert session.messages[-1].content == MissingProfileImageError.user_message

    async def test_failed_profile_leaves_no_partial_state(self, agent, store, fake_client, captured_image):
        session_id = store.current_session_id
        fake_client.profile_results.append(AnalysisSchemaError("missing openingLines"))

        await agent.send(session_id, text="hi", image=captured_image)

        session = store.get_session(session_id)
        assert session.active_profile is None
        assert [m.type for m in session.messages] == [MessageType.TEXT, MessageType.ERROR]
        assert session.messages[-1].content == PROFILE_FAILURE_MESSAGE
        assert "openingLines" not in session.messages[-1].content

    async def test_unexpected_exception_becomes_error_message(self, agent, store, fake_client, captured_image):
        session_id = store.current_session_id
        fake_client.profile_results.append(KeyError("boom"))

        await agent.send(session_id, image=captured_image)

        session = store.get_session(session_id)
        assert session.messages[-1].type == MessageType.ERROR
        assert session.active_profile is None

    async def test_callback_fires_on_success(self, store, fake_client, captured_image):
        seen = []
        agent = ConversationAgent(
            session_store=store,
            analysis_client=fake_client,
            on_profile_established=lambda sid, profile: seen.append((sid, profile.display_name)),
        )
        session_id = store.current_session_id

        await _establish(agent, fake_client, session_id, captured_image)

        assert seen == [(session_id, "Amy")]

    async def test_failing_callback_does_not_escape_send(self, store, fake_client, captured_image):
        def explode(session_id, profile):
            raise RuntimeError("panel broke")

        agent = ConversationAgent(
            session_store=store,
            analysis_client=fake_client,
            on_profile_established=explode,
        )
        session_id = store.current_session_id

        await _establish(agent, fake_client, session_id, captured_image)

        assert store.get_session(session_id).state == SessionState.PROFILE_ESTABLISHED
        assert agent.is_processing(session_id) is False

    async def test_events_are_recorded(self, store, fake_client, captured_image):
        log_store = LogStore()
        agent = ConversationAgent(session_store=store, analysis_client=fake_client, log_store=log_store)

        await _establish(agent, fake_client, store.current_session_id, captured_image)

        assert [e["event_type"] for e in log_store.recent()] == ["user_message", "profile_established"]
        assert log_store.recent("profile_established")[0]["payload"]["name"] == "Amy"


@pytest.mark.anyio
class TestChatAdvice:
    async def test_text_only_send_appends_one_advice(self, agent, store, fake_client, captured_image):
        session_id = store.current_session_id
        await _establish(agent, fake_client, session_id, captured_image)
        before = store.get_session(session_id)
        fake_client.chat_results.append(_advice())

        await agent.send(session_id, text="she said yes")

        after = store.get_session(session_id)
        assert len(after.messages) == len(before.messages) + 2
        assert after.messages[-2].content == "she said yes"
        assert after.messages[-1].type == MessageType.CHAT_ADVICE
        assert after.active_profile == before.active_profile
        call = fake_client.calls[-1]
        assert call["op"] == "chat"
        assert call["image"] is None
        assert call["profile"] == before.active_profile

    async def test_transport_error_appends_one_error(self, agent, store, fake_client, captured_image):
        session_id = store.current_session_id
        await _establish(agent, fake_client, session_id, captured_image)
        before = store.get_session(session_id)
        fake_client.chat_results.append(AnalysisTransportError("connection reset by peer"))

        await agent.send(session_id, text="she said yes", image=captured_image)

        after = store.get_session(session_id)
        assert len(after.messages) == len(before.messages) + 2
        error = after.messages[-1]
        assert error.type == MessageType.ERROR
        assert error.content == CHAT_FAILURE_MESSAGE
        assert "connection reset" not in error.content
        assert after.active_profile == before.active_profile

    async def test_configuration_error_propagates(self, agent, store, fake_client, captured_image):
        session_id = store.current_session_id
        await _establish(agent, fake_client, session_id, captured_image)
        fake_client.chat_results.append(ConfigurationError())

        with pytest.raises(ConfigurationError):
            await agent.send(session_id, text="hello?")

        assert agent.is_processing(session_id) is False


@pytest.mark.anyio
class TestSendGuards:
    async def test_empty_send_is_ignored(self, agent, store, fake_client):
        session_id = store.current_session_id

        await agent.send(session_id, text="   ")

        assert store.get_session(session_id).messages == []
        assert fake_client.calls == []

    async def test_unknown_session_is_ignored(self, agent, fake_client, captured_image):
        await agent.send("nope", text="hi", image=captured_image)

        assert fake_client.calls == []

    async def test_user_message_precedes_outcome(self, agent, store, fake_client, captured_image):
        session_id = store.current_session_id
        seen_during_call = []

        async def hook():
            seen_during_call.append([m.type for m in store.get_session(session_id).messages])

        fake_client.hook = hook
        await _establish(agent, fake_client, session_id, captured_image)

        assert seen_during_call == [[MessageType.TEXT]]

    async def test_second_send_while_in_flight_is_ignored(self, agent, store, fake_client, captured_image):
        session_id = store.current_session_id
        release = anyio.Event()

        async def hook():
            await release.wait()

        fake_client.hook = hook
        fake_client.profile_results.append(_profile())

        async with anyio.create_task_group() as tg:
            tg.start_soon(agent.send, session_id, "hi", captured_image)
            await anyio.wait_all_tasks_blocked()
            assert agent.is_processing(session_id)

            await agent.send(session_id, text="again", image=captured_image)
            release.set()

        assert len(fake_client.calls) == 1
        assert agent.is_processing(session_id) is False
        assert [m.content for m in store.get_session(session_id).messages if m.type == MessageType.TEXT] == ["hi"]

    async def test_result_lands_in_originating_session(self, agent, store, fake_client, captured_image):
        origin = store.current_session_id
        release = anyio.Event()

        async def hook():
            await release.wait()

        fake_client.hook = hook
        fake_client.profile_results.append(_profile())

        async with anyio.create_task_group() as tg:
            tg.start_soon(agent.send, origin, "hi", captured_image)
            await anyio.wait_all_tasks_blocked()
            other = store.create_session()
            release.set()

        assert store.current_session_id == other
        assert store.get_session(other).messages == []
        assert store.get_session(origin).state == SessionState.PROFILE_ESTABLISHED

    async def test_result_for_deleted_session_is_dropped(self, agent, store, fake_client, captured_image):
        origin = store.current_session_id
        release = anyio.Event()

        async def hook():
            await release.wait()

        fake_client.hook = hook
        fake_client.profile_results.append(_profile())

        async with anyio.create_task_group() as tg:
            tg.start_soon(agent.send, origin, "hi", captured_image)
            await anyio.wait_all_tasks_blocked()
            store.delete_session(origin)
            release.set()

        assert store.get_session(origin) is None
        assert len(store) == 1


def test_opener_advice_without_name():
    advice = build_opener_advice(_profile(name=None))

    assert advice.situation_analysis == prompts.OPENER_SITUATION_UNNAMED
