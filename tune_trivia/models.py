"""
Core data models for the Tune Trivia game.
"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class QuestionMetadata:
    """Descriptive information about the song behind a question."""
    song_title: str
    artist: str
    album: str
    release_year: int
    genre: str
    difficulty: str


@dataclass(frozen=True)
class Question:
    """Represents a single trivia question about an audio clip."""
    id: str
    audio_url: str
    start_time: float
    end_time: float
    question_text: str
    options: List[str]
    correct_answer: str
    metadata: Optional[QuestionMetadata] = None

    @property
    def clip_duration(self) -> float:
        """Length of the clip window in seconds."""
        return self.end_time - self.start_time


@dataclass
class QuizSettings:
    """Configuration settings for a trivia session."""
    working_set_size: int = 10
    feedback_delay: Optional[float] = 1.0
    media_ready_timeout: float = 5.0
    questions_file: Optional[str] = None


@dataclass(frozen=True)
class ResultSummary:
    """Final score handed to the presentation layer when a session completes."""
    score: int
    total: int

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return self.score / self.total * 100

    @property
    def message(self) -> str:
        """Rating line shown on the results screen."""
        percentage = self.percentage
        if self.total > 0 and percentage >= 100:
            return "Perfect Score! 🎉"
        if percentage >= 80:
            return "Amazing! 🌟"
        if percentage >= 60:
            return "Great Job! 👏"
        if percentage >= 40:
            return "Good Try! 💪"
        return "Keep Practicing! 🎵"

    @property
    def celebrate(self) -> bool:
        return self.percentage >= 80


@dataclass(frozen=True)
class QuestionView:
    """What the presentation layer needs to render the current question."""
    number: int
    total: int
    question_text: str
    options: List[str] = field(default_factory=list)
    is_playing: bool = False
    can_answer: bool = True


@dataclass(frozen=True)
class FeedbackView:
    """Outcome of the answer given to the current question."""
    selected_answer: str
    is_correct: bool
    correct_answer: str

    @property
    def message(self) -> str:
        if self.is_correct:
            return "Correct! 🎉"
        return f"Wrong! The correct answer was '{self.correct_answer}' 😔"
