"""
Tests for Playback Controller

Tests the speech playback state machine:
- play/pause/resume/stop transitions and their no-op cases
- Blank text never starts playback
- Natural end returns to Idle; stale end events are ignored
- Voice auto-selection and user choice precedence
- Reconciliation corrections, grace window and Paused exemption
- Disabled controller when no speech engine is available
"""

import asyncio

import pytest

from smart_reader.core.errors import PlaybackUnsupported
from smart_reader.reader.models import Voice
from smart_reader.reader.playback import (
    PlaybackController,
    PlaybackState,
    choose_voice,
    resolve_speech_engine,
)

from conftest import FakeClock, FakeSpeechEngine

ARABIC = Voice(name="Maged", locale="ar-SA")
EGYPTIAN = Voice(name="Tarik", locale="ar-EG")
ENGLISH = Voice(name="Samantha", locale="en-US")

POLL = 0.5


def _controller(voices=()) -> tuple[PlaybackController, FakeSpeechEngine, FakeClock]:
    engine = FakeSpeechEngine(voices)
    clock = FakeClock()
    controller = PlaybackController(
        engine, locale="ar-SA", poll_interval=POLL, voice_timeout=0.1, clock=clock
    )
    return controller, engine, clock


# ──────────────────────────────────────────────────────────────
# Transition tests
# ──────────────────────────────────────────────────────────────


class TestTransitions:
    """Tests for user-driven state changes."""

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_play_blank_stays_idle(self, text: str) -> None:
        controller, engine, _ = _controller()
        controller.play(text)
        assert controller.state is PlaybackState.IDLE
        assert engine.spoken == []

    def test_play(self) -> None:
        controller, engine, _ = _controller()
        controller.play("hello")
        assert controller.state is PlaybackState.PLAYING
        text, voice, locale, rate = engine.spoken[0]
        assert (text, voice, locale, rate) == ("hello", None, "ar-SA", 1.0)

    def test_pause_while_idle_is_noop(self) -> None:
        controller, engine, _ = _controller()
        controller.pause()
        assert controller.state is PlaybackState.IDLE
        assert engine.pause_calls == 0

    def test_pause_and_resume(self) -> None:
        controller, engine, _ = _controller()
        controller.play("hello")
        controller.pause()
        assert controller.state is PlaybackState.PAUSED
        controller.resume()
        assert controller.state is PlaybackState.PLAYING
        assert (engine.pause_calls, engine.resume_calls) == (1, 1)

    def test_resume_while_playing_is_noop(self) -> None:
        controller, engine, _ = _controller()
        controller.play("hello")
        controller.resume()
        assert controller.state is PlaybackState.PLAYING
        assert engine.resume_calls == 0

    @pytest.mark.parametrize("pause_first", [False, True])
    def test_stop_cancels_engine(self, pause_first: bool) -> None:
        """Test stop from Playing or Paused always ends Idle and cancels the engine."""
        controller, engine, _ = _controller()
        controller.play("hello")
        if pause_first:
            controller.pause()
        cancels_before = engine.cancel_calls
        controller.stop()
        assert controller.state is PlaybackState.IDLE
        assert engine.cancel_calls == cancels_before + 1

    def test_play_cancels_previous_utterance(self) -> None:
        controller, engine, _ = _controller()
        controller.play("first")
        controller.play("second")
        assert engine.cancel_calls == 2
        assert [s[0] for s in engine.spoken] == ["first", "second"]
        assert controller.state is PlaybackState.PLAYING

    def test_play_from_paused(self) -> None:
        controller, _, _ = _controller()
        controller.play("first")
        controller.pause()
        controller.play("second")
        assert controller.state is PlaybackState.PLAYING

    def test_natural_end(self) -> None:
        controller, engine, _ = _controller()
        controller.play("hello")
        engine.finish()
        assert controller.state is PlaybackState.IDLE

    def test_stale_end_ignored(self) -> None:
        """Test the end of a superseded utterance does not stop the new one."""
        controller, engine, _ = _controller()
        controller.play("first")
        stale_end = engine.on_end
        controller.play("second")
        stale_end()
        assert controller.state is PlaybackState.PLAYING

    @pytest.mark.parametrize("speed, expected", [(3.0, 2.0), (0.1, 0.5), (1.3, 1.3)])
    def test_speed_clamped(self, speed: float, expected: float) -> None:
        controller, engine, _ = _controller()
        assert controller.set_speed(speed) == expected
        controller.play("hello")
        assert engine.spoken[0][3] == expected

    def test_step_speed(self) -> None:
        """Test speed moves in tenths and stays within bounds."""
        controller, _, _ = _controller()
        assert controller.step_speed(3) == 1.3
        assert controller.step_speed(-1) == 1.2
        assert controller.step_speed(50) == 2.0
        assert controller.step_speed(-50) == 0.5

    def test_listener_receives_snapshots(self) -> None:
        controller, _, _ = _controller()
        snapshots = []
        controller.add_listener(snapshots.append)
        controller.play("hello")
        controller.pause()
        assert snapshots[-1].is_paused and not snapshots[-1].is_playing


# ──────────────────────────────────────────────────────────────
# Voice selection tests
# ──────────────────────────────────────────────────────────────


class TestVoices:
    """Tests for voice discovery and selection."""

    def test_choose_voice_preference(self) -> None:
        assert choose_voice([ENGLISH, EGYPTIAN, ARABIC], "ar-SA") is ARABIC
        assert choose_voice([ENGLISH, EGYPTIAN], "ar-SA") is EGYPTIAN
        assert choose_voice([ENGLISH], "ar-SA") is ENGLISH
        assert choose_voice([], "ar-SA") is None

    @pytest.mark.asyncio
    async def test_load_voices_auto_selects(self) -> None:
        controller, engine, _ = _controller([ENGLISH, ARABIC])
        assert await controller.load_voices() == (ENGLISH, ARABIC)
        assert controller.selected_voice is ARABIC
        controller.play("hello")
        assert engine.spoken[0][1:3] == (ARABIC, "ar-SA")

    @pytest.mark.asyncio
    async def test_load_voices_timeout(self) -> None:
        """Test an engine that never answers leaves selection empty."""
        controller, engine, _ = _controller()

        async def never() -> list:
            await asyncio.sleep(10)
            return []

        engine.list_voices = never
        assert await controller.load_voices() == ()
        assert controller.selected_voice is None

    def test_late_voices_respect_user_choice(self) -> None:
        controller, _, _ = _controller()
        controller.update_voices([ENGLISH])
        assert controller.select_voice("Samantha") is ENGLISH
        controller.update_voices([ENGLISH, ARABIC])
        assert controller.selected_voice is ENGLISH

    def test_late_voices_auto_select(self) -> None:
        controller, _, _ = _controller()
        controller.update_voices([])
        assert controller.selected_voice is None
        controller.update_voices([ENGLISH, ARABIC])
        assert controller.selected_voice is ARABIC

    def test_unknown_voice(self) -> None:
        controller, _, _ = _controller()
        controller.update_voices([ARABIC])
        assert controller.select_voice("Nobody") is None
        assert controller.selected_voice is ARABIC


# ──────────────────────────────────────────────────────────────
# Reconciliation tests
# ──────────────────────────────────────────────────────────────


class TestReconciliation:
    """Tests for drift correction against the engine's flags."""

    def test_playing_but_engine_silent(self) -> None:
        controller, engine, clock = _controller()
        controller.play("hello")
        engine.speaking = False
        clock.advance(POLL)
        assert controller.reconcile() is True
        assert controller.state is PlaybackState.IDLE

    def test_idle_but_engine_speaking(self) -> None:
        controller, engine, clock = _controller()
        engine.speaking = True
        clock.advance(POLL)
        assert controller.reconcile() is True
        assert controller.state is PlaybackState.PLAYING

    def test_grace_window(self) -> None:
        """Test a fresh user transition is not contradicted."""
        controller, engine, clock = _controller()
        controller.play("hello")
        engine.speaking = False
        clock.advance(POLL / 2)
        assert controller.reconcile() is False
        assert controller.state is PlaybackState.PLAYING

    def test_paused_never_reconciled(self) -> None:
        """Test a pause is not undone even if the engine ignores it."""
        controller, engine, clock = _controller()
        controller.play("hello")
        controller.pause()
        engine.paused = False
        engine.speaking = True
        clock.advance(POLL * 10)
        assert controller.reconcile() is False
        assert controller.state is PlaybackState.PAUSED

    def test_consistent_state_untouched(self) -> None:
        controller, _, clock = _controller()
        controller.play("hello")
        clock.advance(POLL)
        assert controller.reconcile() is False
        assert controller.state is PlaybackState.PLAYING

    @pytest.mark.asyncio
    async def test_poll_loop(self) -> None:
        engine = FakeSpeechEngine()
        controller = PlaybackController(engine, poll_interval=0.01)
        controller.start()
        engine.speaking = True
        await asyncio.sleep(0.05)
        assert controller.state is PlaybackState.PLAYING
        await controller.close()
        assert controller.state is PlaybackState.IDLE


# ──────────────────────────────────────────────────────────────
# Unsupported engine tests
# ──────────────────────────────────────────────────────────────


class TestUnsupported:
    """Tests for playback without a speech engine."""

    def test_resolve_without_factory(self) -> None:
        with pytest.raises(PlaybackUnsupported):
            resolve_speech_engine(None)

    def test_resolve_failing_factory(self) -> None:
        def factory():
            raise OSError("no audio device")

        with pytest.raises(PlaybackUnsupported, match="no audio device"):
            resolve_speech_engine(factory)

    @pytest.mark.asyncio
    async def test_disabled_controller_is_noop(self) -> None:
        controller = PlaybackController(None)
        assert not controller.supported
        controller.play("hello")
        controller.pause()
        controller.resume()
        controller.stop()
        controller.start()
        assert await controller.load_voices() == ()
        assert controller.state is PlaybackState.IDLE
        assert controller.snapshot().supported is False
        await controller.close()
