"""
Unit tests for the Session Controller.
"""
import asyncio
from itertools import count

import pytest

from src.services.generation import GenerationSuccess, PromptDispatcher
from src.services.session import SessionController
from src.services.session.state import SessionPhase, StepStatus


def _ids():
    counter = count(1)
    return lambda: f"sid-{next(counter)}"


def _controller(dispatcher) -> SessionController:
    return SessionController(dispatcher, thinking_tick=0, countdown_tick=0, id_factory=_ids())


class BlockingDispatcher:
    """Dispatcher that holds every call until released."""

    def __init__(self, deck):
        self.deck = deck
        self.release = asyncio.Event()
        self.calls = []

    async def generate(self, topic, recent_history=()):
        self.calls.append(("generate", topic))
        await self.release.wait()
        return GenerationSuccess(deck=self.deck, message="Done")

    async def revise(self, instruction, current_deck, topic=None):
        self.calls.append(("revise", instruction))
        await self.release.wait()
        return GenerationSuccess(deck=self.deck, message="Revised")


class TestSubmit:
    """Tests for SessionController.submit."""

    @pytest.mark.asyncio
    async def test_generate_turn_displays_deck(self, fake_client, model_deck, recorded_sleep):
        controller = _controller(PromptDispatcher(client=fake_client([model_deck(6)]), sleep=recorded_sleep))
        phases = [controller.state.phase]
        controller.subscribe(lambda state: phases.append(state.phase))

        accepted = await controller.submit("Quantum Computing")

        assert accepted is True
        assert phases[0] is SessionPhase.IDLE
        assert phases[1] is SessionPhase.AWAITING_GENERATION
        assert phases[-1] is SessionPhase.DISPLAYING
        state = controller.state
        assert len(state.deck) == 6
        assert state.deck[0].type == "title"
        assert [m.sender for m in state.messages] == ["user", "ai"]
        assert state.session_id == "sid-1"
        assert state.thinking == ()

    @pytest.mark.asyncio
    async def test_empty_prompt_is_rejected(self, fake_client, recorded_sleep):
        controller = _controller(PromptDispatcher(client=fake_client([]), sleep=recorded_sleep))

        assert await controller.submit("   ") is False
        assert controller.state.phase is SessionPhase.IDLE
        assert controller.state.messages == ()

    @pytest.mark.asyncio
    async def test_concurrent_submission_is_rejected(self, sample_deck):
        dispatcher = BlockingDispatcher(sample_deck)
        controller = _controller(dispatcher)
        snapshots = []
        controller.subscribe(snapshots.append)

        first = asyncio.create_task(controller.submit("Quantum Computing"))
        for _ in range(5):
            await asyncio.sleep(0)

        assert controller.state.is_busy is True
        assert await controller.submit("Something else") is False
        assert controller.reset() is False
        assert len(controller.state.messages) == 1

        dispatcher.release.set()
        assert await first is True

        assert dispatcher.calls == [("generate", "Quantum Computing")]
        assert controller.state.phase is SessionPhase.DISPLAYING
        assert any(
            step.status is StepStatus.IN_PROGRESS
            for state in snapshots
            for step in state.thinking
        )

    @pytest.mark.asyncio
    async def test_follow_up_revises_and_keeps_id(self, fake_client, model_deck, recorded_sleep):
        client = fake_client([model_deck(6), model_deck(2, message="Trimmed")])
        controller = _controller(PromptDispatcher(client=client, sleep=recorded_sleep))

        await controller.submit("Oceans")
        first_messages = controller.state.messages
        await controller.submit("Keep only two slides")

        state = controller.state
        assert state.session_id == "sid-1"
        assert state.prompt == "Oceans"
        assert len(state.deck) == 2
        assert state.messages[:2] == first_messages
        assert [m.text for m in state.messages[2:]] == ["Keep only two slides", "Trimmed"]
        assert "Current slides:" in client.prompts[1]

    @pytest.mark.asyncio
    async def test_subscriber_errors_do_not_break_turn(self, fake_client, model_deck, recorded_sleep):
        controller = _controller(PromptDispatcher(client=fake_client([model_deck(3)]), sleep=recorded_sleep))

        def broken(state):
            raise RuntimeError("listener failed")

        controller.subscribe(broken)

        assert await controller.submit("Topic") is True
        assert controller.state.phase is SessionPhase.DISPLAYING

    @pytest.mark.asyncio
    async def test_unsubscribe(self, fake_client, model_deck, recorded_sleep):
        controller = _controller(PromptDispatcher(client=fake_client([model_deck(3)]), sleep=recorded_sleep))
        seen = []
        unsubscribe = controller.subscribe(seen.append)
        unsubscribe()

        await controller.submit("Topic")

        assert seen == []


class TestFailures:
    """Tests for error handling and retry."""

    @pytest.mark.asyncio
    async def test_overload_retry_after_countdown(self, fake_client, model_deck, status_error, recorded_sleep):
        client = fake_client([status_error("overloaded", 503)] * 3 + [model_deck(5)])
        controller = _controller(PromptDispatcher(client=client, sleep=recorded_sleep))

        await controller.submit("Solar Power")

        state = controller.state
        assert state.phase is SessionPhase.ERRORING
        assert state.error.retryable is True
        assert state.error.retry_remaining == 10
        assert len(state.deck) == 4
        assert await controller.retry() is False

        await controller._countdown_task

        assert controller.state.error.retry_remaining == 0
        assert controller.state.can_retry is True

        assert await controller.retry() is True

        state = controller.state
        assert state.phase is SessionPhase.DISPLAYING
        assert len(state.deck) == 5
        assert [m.sender for m in state.messages] == ["user", "ai", "ai"]
        assert "User Request: Solar Power" in client.prompts[-1]

    @pytest.mark.asyncio
    async def test_quota_failure_is_fatal(self, fake_client, recorded_sleep):
        client = fake_client([RuntimeError("429 quota exceeded")])
        controller = _controller(PromptDispatcher(client=client, sleep=recorded_sleep))

        await controller.submit("Renewable Energy")

        state = controller.state
        assert state.phase is SessionPhase.ERRORING
        assert state.error.retryable is False
        assert state.can_retry is False
        assert [s.title for s in state.deck][1:] == ["Introduction", "Key Concepts", "Future Outlook"]
        assert state.messages[-1].sender == "ai"
        assert state.session_id == "sid-1"
        assert await controller.retry() is False

    @pytest.mark.asyncio
    async def test_new_prompt_cancels_countdown(self, fake_client, model_deck, status_error, recorded_sleep):
        client = fake_client([status_error("overloaded", 503)] * 3 + [model_deck(3)])
        controller = _controller(PromptDispatcher(client=client, sleep=recorded_sleep))

        await controller.submit("Solar Power")
        await controller.submit("Try a different angle")

        assert controller.state.phase is SessionPhase.DISPLAYING
        assert controller.state.error is None

    @pytest.mark.asyncio
    async def test_unexpected_dispatcher_error(self):
        class ExplodingDispatcher:
            async def generate(self, topic, recent_history=()):
                raise KeyError("boom")

        controller = _controller(ExplodingDispatcher())

        await controller.submit("Volcanoes")

        state = controller.state
        assert state.phase is SessionPhase.ERRORING
        assert state.deck[0].title == "Volcanoes"
        assert state.error.retryable is False


class TestResetAndLoad:

    @pytest.mark.asyncio
    async def test_reset_starts_new_chat(self, fake_client, model_deck, recorded_sleep):
        controller = _controller(PromptDispatcher(client=fake_client([model_deck(3), model_deck(4)]), sleep=recorded_sleep))
        await controller.submit("Topic")

        assert controller.reset() is True
        assert controller.state.phase is SessionPhase.IDLE
        assert controller.state.deck == ()

        await controller.submit("Another topic")
        assert controller.state.session_id == "sid-2"

    @pytest.mark.asyncio
    async def test_load_restores_session(self, sample_session, fake_client):
        controller = _controller(PromptDispatcher(client=fake_client([])))

        assert controller.load(sample_session) is True

        state = controller.state
        assert state.phase is SessionPhase.DISPLAYING
        assert state.session_id == "session-1"
        assert len(state.messages) == 2

        await controller.close()

    @pytest.mark.asyncio
    async def test_load_clears_pending_countdown(self, fake_client, status_error, recorded_sleep, sample_session):
        client = fake_client([status_error("overloaded", 503)] * 3)
        controller = _controller(PromptDispatcher(client=client, sleep=recorded_sleep))
        snapshots = []
        controller.subscribe(snapshots.append)

        await controller.submit("Solar Power")
        assert controller.state.error.retry_remaining == 10

        assert controller.load(sample_session) is True

        assert snapshots[-2].error.retry_remaining == 0
        assert snapshots[-1].session_id == "session-1"
        assert snapshots[-1].error is None

    @pytest.mark.asyncio
    async def test_reset_clears_pending_countdown(self, fake_client, status_error, recorded_sleep):
        client = fake_client([status_error("overloaded", 503)] * 3)
        controller = _controller(PromptDispatcher(client=client, sleep=recorded_sleep))
        snapshots = []
        controller.subscribe(snapshots.append)

        await controller.submit("Solar Power")
        controller.reset()

        assert snapshots[-2].error.retry_remaining == 0
        assert snapshots[-1].phase is SessionPhase.IDLE


class TestSlideEditing:
    """Tests for per-slide edits through the controller."""

    @staticmethod
    def _loaded(sample_session) -> SessionController:
        tokens = count(1)
        controller = SessionController(
            BlockingDispatcher([]),
            thinking_tick=0,
            countdown_tick=0,
            id_factory=_ids(),
            seed_factory=lambda: f"tok{next(tokens)}",
        )
        controller.load(sample_session)
        return controller

    def test_edit_slide_publishes_state(self, sample_session):
        controller = self._loaded(sample_session)
        seen = []
        controller.subscribe(seen.append)

        assert controller.edit_slide(1, title="Qubits 101") is True

        assert controller.state.deck[1].title == "Qubits 101"
        assert seen == [controller.state]

    def test_rejected_edit_publishes_nothing(self, sample_session):
        controller = self._loaded(sample_session)
        seen = []
        controller.subscribe(seen.append)

        assert controller.edit_slide(7, title="Nope") is False
        assert controller.delete_slide(3) is False
        assert seen == []

    def test_add_and_regenerate_use_seed_factory(self, sample_session):
        controller = self._loaded(sample_session)

        controller.add_slide()
        controller.regenerate_image(0)

        assert controller.state.deck[-1].image.endswith("/new-slide-tok1/800/450.jpg")
        assert controller.state.deck[0].image.endswith("-tok2/800/450.jpg")

    def test_duplicate_move_and_delete(self, sample_session):
        controller = self._loaded(sample_session)

        assert controller.duplicate_slide(1) is True
        assert controller.move_slide(2, 0) is True
        assert controller.delete_slide(2) is True

        assert [s.title for s in controller.state.deck] == ["Qubits (Copy)", "Quantum Computing"]

    @pytest.mark.asyncio
    async def test_edits_rejected_while_generating(self, sample_session, sample_deck):
        dispatcher = BlockingDispatcher(sample_deck)
        controller = _controller(dispatcher)
        controller.load(sample_session)

        turn = asyncio.create_task(controller.submit("Add a conclusion"))
        for _ in range(5):
            await asyncio.sleep(0)

        assert controller.add_slide() is False
        assert controller.edit_slide(0, title="x") is False

        dispatcher.release.set()
        await turn
        assert controller.add_slide() is True
