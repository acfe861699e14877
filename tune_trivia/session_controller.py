"""
Trivia session controller for Tune Trivia.
Owns one session's state and applies the transition rules between quiz phases.
"""
import asyncio
import itertools
import logging
import random
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from . import session_state as transitions
from .models import FeedbackView, QuestionView, QuizSettings, ResultSummary
from .playback import PlaybackError, PlaybackHandle, PlaybackTimer
from .question_store import QuestionStore, QuestionStoreError
from .session_state import SessionPhase, SessionState


LOAD_FAILED_MESSAGE = "Failed to load questions. Please restart the app."


class SessionEvent(Enum):
    """Events emitted to presentation listeners."""
    QUESTION_READY = "question_ready"
    PLAYBACK_STARTED = "playback_started"
    PLAYBACK_STOPPED = "playback_stopped"
    PLAYBACK_FAILED = "playback_failed"
    ANSWER_RECORDED = "answer_recorded"
    COMPLETED = "completed"
    ERROR = "error"
    CLOSED = "closed"


class SessionControllerError(Exception):
    """Base exception for session controller errors."""
    pass


SessionListener = Callable[[SessionEvent, "SessionController"], Any]


class SessionController:
    """
    Drives a single trivia session.

    All transitions are synchronous and never await, so on a single event
    loop they cannot interleave. Scheduled work (clip auto-stop, automatic
    advance) re-enters through the same methods and is discarded when the
    question index or token it captured is no longer current.
    """

    def __init__(
        self,
        question_store: QuestionStore,
        playback_timer: PlaybackTimer,
        settings: Optional[QuizSettings] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the session controller.

        Args:
            question_store: Source of the question pool
            playback_timer: Plays clip windows for the current question
            settings: Session settings, defaults used if None
            rng: Random source for drawing the working set
        """
        self.logger = logging.getLogger(__name__)
        self.question_store = question_store
        self.playback_timer = playback_timer
        self.settings = settings or QuizSettings()
        self.rng = rng or random.Random()

        self._state = SessionState()
        self._started = False
        self._playback: Optional[PlaybackHandle] = None
        self._advance_handle: Optional[asyncio.TimerHandle] = None
        self._advance_tokens = itertools.count(1)
        self._advance_token: Optional[int] = None
        self._listeners: List[SessionListener] = []
        self.last_playback_error: Optional[str] = None
        self.load_error: Optional[QuestionStoreError] = None

    # State access

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def error_message(self) -> Optional[str]:
        return self._state.error_message

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                self.logger.exception(f"Session listener failed on {event.value}")

    def _apply(self, new_state: SessionState) -> bool:
        """Swap in the next state; returns False when the transition was rejected."""
        if new_state is self._state:
            return False
        old_phase = self._state.phase
        self._state = new_state
        if old_phase is not new_state.phase:
            self.logger.debug(f"Session phase {old_phase.value} -> {new_state.phase.value} (index {new_state.index})")
        return True

    # Transitions

    def start(self) -> SessionState:
        """
        Load the question pool and draw the working set.

        Returns:
            The resulting state (READY, COMPLETE for an empty pool, or ERROR)
        """
        if self._started:
            self.logger.warning("Session already started; ignoring start()")
            return self._state
        self._started = True

        try:
            pool = self.question_store.load()
        except QuestionStoreError as e:
            # DataUnavailable and DecodeError are both fatal; no automatic retry
            self.logger.error(f"Session failed to load questions ({type(e).__name__}): {e}")
            self.load_error = e
            self._apply(transitions.load_failed(self._state, LOAD_FAILED_MESSAGE))
            self._emit(SessionEvent.ERROR)
            return self._state

        working_set = transitions.draw_working_set(pool, self.settings.working_set_size, self.rng)
        self._apply(transitions.load_succeeded(self._state, working_set))
        self.logger.info(f"Session started with {len(working_set)} of {len(pool)} questions")

        if self._state.phase is SessionPhase.COMPLETE:
            self._emit(SessionEvent.COMPLETED)
        else:
            self._emit(SessionEvent.QUESTION_READY)
        return self._state

    def request_play(self) -> Optional[PlaybackHandle]:
        """
        Play the clip window of the current question.

        Returns:
            Handle of the scheduled playback, or None if play is not allowed now

        Raises:
            SessionControllerError: If called without a running event loop
        """
        question = self._state.current_question
        if self._state.phase not in transitions.ANSWERABLE_PHASES or question is None:
            self.logger.debug(f"Ignoring play request in phase {self._state.phase.value}")
            return None

        self._stop_playback()
        self.last_playback_error = None
        index = self._state.index
        try:
            handle = self.playback_timer.start(
                question.audio_url,
                question.start_time,
                question.end_time,
                question_index=index,
                on_finished=self._on_playback_finished,
                on_failed=self._on_playback_failed
            )
        except RuntimeError as e:
            raise SessionControllerError(f"Playback requires a running event loop: {e}") from e

        self._playback = handle
        self._apply(transitions.play_requested(self._state))
        self._emit(SessionEvent.PLAYBACK_STARTED)
        return handle

    def select_answer(self, option: str) -> Optional[FeedbackView]:
        """
        Record and score an answer for the current question.

        Args:
            option: Answer text chosen by the player

        Returns:
            Feedback for the answer, or None if the answer was rejected
        """
        question = self._state.current_question
        if self._state.phase not in transitions.ANSWERABLE_PHASES or question is None:
            self.logger.debug(f"Rejecting answer in phase {self._state.phase.value}")
            return None

        if option not in question.options:
            self.logger.warning(f"Answer {option!r} is not one of the options for question {question.id}")

        self._stop_playback()
        self._apply(transitions.answer_selected(self._state, option))
        self.logger.info(
            f"Question {self._state.index + 1}/{self._state.total} answered "
            f"{'correctly' if self._state.is_correct else 'incorrectly'}; score {self._state.score}"
        )
        self._emit(SessionEvent.ANSWER_RECORDED)
        self._schedule_advance()
        return self.feedback_view()

    def advance(self) -> SessionState:
        """
        Move past the feedback of the current question.

        Returns:
            The resulting state; unchanged unless the session was showing feedback
        """
        if not self._apply(transitions.advanced(self._state)):
            self.logger.debug(f"Ignoring advance in phase {self._state.phase.value}")
            return self._state

        self._cancel_scheduled_advance()
        if self._state.phase is SessionPhase.COMPLETE:
            summary = self.result_summary()
            self.logger.info(f"Session complete: {summary.score}/{summary.total}")
            self._emit(SessionEvent.COMPLETED)
        else:
            self._emit(SessionEvent.QUESTION_READY)
        return self._state

    def close(self) -> None:
        """Tear down the session and release any outstanding playback."""
        self._stop_playback()
        self.playback_timer.stop_all()
        self._cancel_scheduled_advance()
        if self._apply(transitions.closed(self._state)):
            self.logger.info("Session closed")
            self._emit(SessionEvent.CLOSED)

    # Scheduled events

    def _on_playback_finished(self, handle: PlaybackHandle) -> None:
        if not self._is_current_playback(handle):
            self.logger.debug(f"Ignoring stale playback completion for question {handle.question_index}")
            return
        self._playback = None
        if self._apply(transitions.playback_stopped(self._state)):
            self._emit(SessionEvent.PLAYBACK_STOPPED)

    def _on_playback_failed(self, handle: PlaybackHandle, error: PlaybackError) -> None:
        if not self._is_current_playback(handle):
            self.logger.debug(f"Ignoring stale playback failure for question {handle.question_index}")
            return
        self._playback = None
        self.last_playback_error = str(error)
        self.logger.warning(f"Playback failed for question {handle.question_index}: {error}")
        self._apply(transitions.playback_stopped(self._state))
        self._emit(SessionEvent.PLAYBACK_FAILED)

    def _is_current_playback(self, handle: PlaybackHandle) -> bool:
        return (
            self._playback is not None
            and handle.token == self._playback.token
            and handle.question_index == self._state.index
            and not self._state.is_terminal
        )

    def _stop_playback(self) -> None:
        if self._playback is not None:
            self.playback_timer.stop(self._playback)
            self._playback = None
        self._apply(transitions.playback_stopped(self._state))

    def _schedule_advance(self) -> None:
        delay = self.settings.feedback_delay
        if delay is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running event loop; automatic advance disabled")
            return
        token = next(self._advance_tokens)
        self._advance_token = token
        self._advance_handle = loop.call_later(delay, self._on_advance_due, token, self._state.index)

    def _on_advance_due(self, token: int, index: int) -> None:
        if token != self._advance_token or index != self._state.index:
            self.logger.debug(f"Ignoring stale automatic advance for question {index}")
            return
        self._advance_handle = None
        self._advance_token = None
        self.advance()

    def _cancel_scheduled_advance(self) -> None:
        if self._advance_handle is not None:
            self._advance_handle.cancel()
        self._advance_handle = None
        self._advance_token = None

    # Presentation outputs

    def question_view(self) -> Optional[QuestionView]:
        """
        Get the view-model for the current question.

        Returns:
            QuestionView, or None when no question is current
        """
        question = self._state.current_question
        if question is None:
            return None
        return QuestionView(
            number=self._state.index + 1,
            total=self._state.total,
            question_text=question.question_text,
            options=list(question.options),
            is_playing=self._state.is_playing,
            can_answer=self._state.phase in transitions.ANSWERABLE_PHASES
        )

    def feedback_view(self) -> Optional[FeedbackView]:
        question = self._state.current_question
        if self._state.phase is not SessionPhase.FEEDBACK or question is None:
            return None
        return FeedbackView(
            selected_answer=self._state.selected_answer,
            is_correct=bool(self._state.is_correct),
            correct_answer=question.correct_answer
        )

    def result_summary(self) -> Optional[ResultSummary]:
        return self._state.result_summary()

    def get_progress(self) -> Dict[str, Any]:
        """
        Get a summary of session progress.

        Returns:
            Dictionary with phase, question number, total and score
        """
        state = self._state
        return {
            'phase': state.phase.value,
            'current_question': min(state.index + 1, state.total),
            'total_questions': state.total,
            'score': state.score,
            'is_playing': state.is_playing,
            'is_terminal': state.is_terminal,
        }
