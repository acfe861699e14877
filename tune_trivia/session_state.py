"""
Explicit session state and the pure transitions between quiz phases.

Every transition takes the current SessionState and returns the next one.
Transitions that are not allowed in the current phase return the state
unchanged, so callers can compare identity to detect a rejected event.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

from .models import Question, ResultSummary


class SessionPhase(Enum):
    """Enumeration of possible trivia session phases."""
    LOADING = "loading"
    READY = "ready"
    ANSWERING = "answering"
    FEEDBACK = "feedback"
    COMPLETE = "complete"
    ERROR = "error"
    CLOSED = "closed"


TERMINAL_PHASES = frozenset({SessionPhase.COMPLETE, SessionPhase.ERROR, SessionPhase.CLOSED})
ANSWERABLE_PHASES = frozenset({SessionPhase.READY, SessionPhase.ANSWERING})


@dataclass(frozen=True)
class SessionState:
    """Snapshot of one trivia session."""
    phase: SessionPhase = SessionPhase.LOADING
    questions: Tuple[Question, ...] = ()
    index: int = 0
    score: int = 0
    selected_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    is_playing: bool = False
    error_message: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def current_question(self) -> Optional[Question]:
        if self.is_terminal or self.phase is SessionPhase.LOADING:
            return None
        if 0 <= self.index < len(self.questions):
            return self.questions[self.index]
        return None

    def result_summary(self) -> Optional[ResultSummary]:
        if self.phase is not SessionPhase.COMPLETE:
            return None
        return ResultSummary(score=self.score, total=self.total)


def draw_working_set(pool: Sequence[Question], size: int, rng) -> Tuple[Question, ...]:
    """
    Draw a random sample without replacement from the question pool.

    Args:
        pool: All loaded questions
        size: Maximum number of questions in the working set
        rng: random.Random compatible source

    Returns:
        Tuple of min(size, len(pool)) distinct questions
    """
    count = max(0, min(size, len(pool)))
    return tuple(rng.sample(list(pool), count))


def load_succeeded(state: SessionState, working_set: Sequence[Question]) -> SessionState:
    if state.phase is not SessionPhase.LOADING:
        return state
    if not working_set:
        return replace(state, phase=SessionPhase.COMPLETE, questions=(), index=0, score=0)
    return replace(state, phase=SessionPhase.READY, questions=tuple(working_set), index=0, score=0)


def load_failed(state: SessionState, message: str) -> SessionState:
    if state.phase is not SessionPhase.LOADING:
        return state
    return replace(state, phase=SessionPhase.ERROR, error_message=message)


def play_requested(state: SessionState) -> SessionState:
    if state.phase not in ANSWERABLE_PHASES:
        return state
    return replace(state, phase=SessionPhase.ANSWERING, is_playing=True)


def playback_stopped(state: SessionState) -> SessionState:
    if not state.is_playing:
        return state
    return replace(state, is_playing=False)


def answer_selected(state: SessionState, option: str) -> SessionState:
    """Score the option against the current question; exact string match only."""
    question = state.current_question
    if state.phase not in ANSWERABLE_PHASES or question is None:
        return state
    is_correct = option == question.correct_answer
    return replace(
        state,
        phase=SessionPhase.FEEDBACK,
        score=state.score + 1 if is_correct else state.score,
        selected_answer=option,
        is_correct=is_correct,
        is_playing=False
    )


def advanced(state: SessionState) -> SessionState:
    if state.phase is not SessionPhase.FEEDBACK:
        return state
    next_index = state.index + 1
    if next_index < state.total:
        return replace(
            state,
            phase=SessionPhase.READY,
            index=next_index,
            selected_answer=None,
            is_correct=None,
            is_playing=False
        )
    return replace(
        state,
        phase=SessionPhase.COMPLETE,
        index=state.total,
        selected_answer=None,
        is_correct=None,
        is_playing=False
    )


def closed(state: SessionState) -> SessionState:
    # Finished sessions keep their outcome; only live ones become CLOSED
    if state.is_terminal:
        return state
    return replace(state, phase=SessionPhase.CLOSED, is_playing=False)
