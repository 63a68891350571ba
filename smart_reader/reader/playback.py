"""
Playback Controller - Speech playback state machine

Wraps an external speech engine that can only be observed by polling its
speaking/paused flags. The controller keeps its own Idle/Playing/Paused
state and periodically reconciles it with what the engine reports.

State machine:
    IDLE    --play(text)-->   PLAYING
    PAUSED  --play(text)-->   PLAYING   (previous utterance cancelled)
    PLAYING --pause()-->      PAUSED
    PAUSED  --resume()-->     PLAYING
    PLAYING/PAUSED --stop()-> IDLE      (engine.cancel() always called)
    PLAYING --natural end-->  IDLE

Reconciliation (every poll interval):
    PLAYING but engine neither speaking nor paused  -> IDLE
    IDLE but engine speaking and not paused         -> PLAYING
    PAUSED is never reconciled: pausing is a user intent, not an engine flag.
    A user transition suppresses reconciliation for one poll interval.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol, Sequence

from .models import (
    DEFAULT_SPEED,
    MAX_SPEED,
    MIN_SPEED,
    SPEED_STEP,
    TtsSessionState,
    Voice,
    clamp,
)
from ..core.config import settings
from ..core.errors import PlaybackUnsupported
from ..observability.logging import get_logger
from ..observability.metrics import PLAYBACK_CORRECTIONS

logger = get_logger(__name__)


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class SpeechEngine(Protocol):
    """Speech collaborator contract. Flags are poll-only."""

    async def list_voices(self) -> Sequence[Voice]: ...

    def speak(
        self,
        text: str,
        voice: Optional[Voice],
        locale: str,
        rate: float,
        on_end: Callable[[], None],
    ) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def cancel(self) -> None: ...

    @property
    def speaking(self) -> bool: ...

    @property
    def paused(self) -> bool: ...


def resolve_speech_engine(
    factory: Optional[Callable[[], SpeechEngine]],
) -> SpeechEngine:
    """
    Build the host speech engine.

    Raises:
        PlaybackUnsupported: No factory was given or the engine is unavailable.
    """
    if factory is None:
        raise PlaybackUnsupported("No speech engine is available in this environment")
    try:
        return factory()
    except (ImportError, OSError, RuntimeError) as exc:
        raise PlaybackUnsupported(f"Speech engine failed to start: {exc}") from exc


def choose_voice(voices: Sequence[Voice], locale: str) -> Optional[Voice]:
    """Exact locale match, then same language, then the first voice."""
    if not voices:
        return None
    target = locale.replace("_", "-").lower()
    language = target.split("-")[0]

    for voice in voices:
        if voice.locale.replace("_", "-").lower() == target:
            return voice
    for voice in voices:
        if voice.locale.replace("_", "-").lower().split("-")[0] == language:
            return voice
    return voices[0]


class PlaybackController:
    """
    Idle/Playing/Paused controller over a poll-only speech engine.

    Usage:
        controller = PlaybackController(engine)
        controller.start()              # reconciliation loop
        await controller.load_voices()
        controller.play("Hello")
        ...
        await controller.close()

    With engine=None the controller is disabled: supported is False and
    every control is a no-op.
    """

    def __init__(
        self,
        engine: Optional[SpeechEngine],
        *,
        locale: Optional[str] = None,
        poll_interval: Optional[float] = None,
        voice_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._locale = locale or settings.target_locale
        self._poll_interval = poll_interval or settings.tts_poll_interval_s
        self._voice_timeout = voice_timeout or settings.voice_discovery_timeout_s
        self._clock = clock

        self._state = PlaybackState.IDLE
        self._speed = DEFAULT_SPEED
        self._voices: tuple[Voice, ...] = ()
        self._selected_voice: Optional[Voice] = None
        self._voice_chosen_by_user = False

        self._utterance_ids = itertools.count(1)
        self._current_utterance = 0
        self._last_transition = float("-inf")
        self._poll_task: Optional[asyncio.Task] = None
        self._listeners: list[Callable[[TtsSessionState], None]] = []

    # ─── Observation ────────────────────────────────────────

    @property
    def supported(self) -> bool:
        return self._engine is not None

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def selected_voice(self) -> Optional[Voice]:
        return self._selected_voice

    def snapshot(self) -> TtsSessionState:
        return TtsSessionState(
            is_playing=self._state is PlaybackState.PLAYING,
            is_paused=self._state is PlaybackState.PAUSED,
            speed=self._speed,
            available_voices=self._voices,
            selected_voice=self._selected_voice,
            supported=self.supported,
        )

    def add_listener(self, listener: Callable[[TtsSessionState], None]) -> None:
        self._listeners.append(listener)

    # ─── Controls ───────────────────────────────────────────

    def play(self, text: str) -> None:
        """Speak text, cancelling any utterance in progress. Blank text is ignored."""
        if not self._enabled("play"):
            return
        if not text or not text.strip():
            logger.debug("playback.play.empty_text", state=self._state.value)
            return

        self._current_utterance = 0
        self._engine.cancel()
        utterance_id = next(self._utterance_ids)
        self._current_utterance = utterance_id
        self._engine.speak(
            text,
            self._selected_voice,
            self._selected_voice.locale if self._selected_voice else self._locale,
            self._speed,
            lambda: self._on_utterance_end(utterance_id),
        )
        logger.info(
            "playback.play",
            chars=len(text),
            voice=self._selected_voice.name if self._selected_voice else None,
            speed=self._speed,
        )
        self._transition(PlaybackState.PLAYING)

    def pause(self) -> None:
        if not self._enabled("pause"):
            return
        if self._state is not PlaybackState.PLAYING:
            logger.debug("playback.pause.ignored", state=self._state.value)
            return
        self._engine.pause()
        self._transition(PlaybackState.PAUSED)

    def resume(self) -> None:
        if not self._enabled("resume"):
            return
        if self._state is not PlaybackState.PAUSED:
            logger.debug("playback.resume.ignored", state=self._state.value)
            return
        self._engine.resume()
        self._transition(PlaybackState.PLAYING)

    def stop(self) -> None:
        """Cancel the engine and go Idle."""
        if not self._enabled("stop"):
            return
        self._engine.cancel()
        self._current_utterance = 0
        self._transition(PlaybackState.IDLE)

    def set_speed(self, speed: float) -> float:
        """Clamp and store the rate used by the next utterance."""
        self._speed = round(clamp(float(speed), MIN_SPEED, MAX_SPEED), 2)
        self._notify()
        return self._speed

    def step_speed(self, steps: int) -> float:
        """Move the rate by whole SPEED_STEP increments (negative slows down)."""
        return self.set_speed(self._speed + steps * SPEED_STEP)

    def select_voice(self, name: str) -> Optional[Voice]:
        """Pick a voice by name. A user choice survives later voice discovery."""
        for voice in self._voices:
            if voice.name == name:
                self._selected_voice = voice
                self._voice_chosen_by_user = True
                logger.info("playback.voice.selected", voice=name, locale=voice.locale)
                self._notify()
                return voice
        logger.warning("playback.voice.unknown", voice=name)
        return None

    # ─── Voice discovery ────────────────────────────────────

    async def load_voices(self) -> tuple[Voice, ...]:
        """Ask the engine for its voices, giving up after the discovery timeout."""
        if not self._enabled("load_voices"):
            return ()
        try:
            voices = await asyncio.wait_for(self._engine.list_voices(), self._voice_timeout)
        except asyncio.TimeoutError:
            logger.warning("playback.voices.timeout", timeout_s=self._voice_timeout)
            return self._voices
        self.update_voices(voices)
        return self._voices

    def update_voices(self, voices: Iterable[Voice]) -> None:
        """Accept a (possibly late) voice list and auto-select if the user has not chosen."""
        self._voices = tuple(voices)
        if not self._voice_chosen_by_user:
            self._selected_voice = choose_voice(self._voices, self._locale)
        logger.info(
            "playback.voices.updated",
            count=len(self._voices),
            selected=self._selected_voice.name if self._selected_voice else None,
        )
        self._notify()

    # ─── Reconciliation ─────────────────────────────────────

    def reconcile(self) -> bool:
        """
        Correct local state against the engine's flags once.

        Returns:
            True when the state was changed.
        """
        if self._engine is None or self._state is PlaybackState.PAUSED:
            return False
        if self._clock() - self._last_transition < self._poll_interval:
            return False

        speaking = self._engine.speaking
        engine_paused = self._engine.paused

        if self._state is PlaybackState.PLAYING and not speaking and not engine_paused:
            PLAYBACK_CORRECTIONS.labels(reason="engine_silent").inc()
            logger.info("playback.reconcile.corrected", reason="engine_silent")
            self._state = PlaybackState.IDLE
            self._current_utterance = 0
            self._notify()
            return True

        if self._state is PlaybackState.IDLE and speaking and not engine_paused:
            PLAYBACK_CORRECTIONS.labels(reason="engine_speaking").inc()
            logger.info("playback.reconcile.corrected", reason="engine_speaking")
            self._state = PlaybackState.PLAYING
            self._notify()
            return True

        return False

    def start(self) -> None:
        """Start the reconciliation loop on the running event loop."""
        if self._engine is None or self._poll_task is not None:
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def close(self) -> None:
        """Stop playback and the reconciliation loop."""
        if self._engine is not None and self._state is not PlaybackState.IDLE:
            self.stop()
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            self.reconcile()

    # ─── Private helpers ────────────────────────────────────

    def _enabled(self, action: str) -> bool:
        if self._engine is None:
            logger.debug("playback.unsupported", action=action)
            return False
        return True

    def _on_utterance_end(self, utterance_id: int) -> None:
        if utterance_id != self._current_utterance:
            logger.debug("playback.end.stale", utterance_id=utterance_id)
            return
        self._current_utterance = 0
        if self._state is not PlaybackState.IDLE:
            self._transition(PlaybackState.IDLE)

    def _transition(self, state: PlaybackState) -> None:
        previous = self._state
        self._state = state
        self._last_transition = self._clock()
        if previous is not state:
            logger.debug("playback.transition", previous=previous.value, state=state.value)
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in self._listeners:
            listener(snapshot)
