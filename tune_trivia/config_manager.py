"""
Configuration manager for Tune Trivia settings and parameters.
"""
import logging
from typing import Optional, Dict, Any, List
from pathlib import Path

from .models import QuizSettings


class ConfigManager:
    """Manages trivia session settings."""

    # Default configuration values
    DEFAULT_WORKING_SET_SIZE = 10
    DEFAULT_FEEDBACK_DELAY = 1.0
    DEFAULT_MEDIA_READY_TIMEOUT = 5.0
    DEFAULT_QUESTIONS_FILE = None  # Use the bundled question file

    # Validation limits
    MIN_WORKING_SET_SIZE = 1
    MAX_WORKING_SET_SIZE = 10
    MIN_FEEDBACK_DELAY = 0.0
    MAX_FEEDBACK_DELAY = 30.0
    MIN_MEDIA_READY_TIMEOUT = 0.5
    MAX_MEDIA_READY_TIMEOUT = 60.0

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._settings = QuizSettings(
            working_set_size=self.DEFAULT_WORKING_SET_SIZE,
            feedback_delay=self.DEFAULT_FEEDBACK_DELAY,
            media_ready_timeout=self.DEFAULT_MEDIA_READY_TIMEOUT,
            questions_file=self.DEFAULT_QUESTIONS_FILE
        )

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get a copy of the current settings.

        Returns:
            QuizSettings object with current configuration
        """
        return QuizSettings(
            working_set_size=self._settings.working_set_size,
            feedback_delay=self._settings.feedback_delay,
            media_ready_timeout=self._settings.media_ready_timeout,
            questions_file=self._settings.questions_file
        )

    @staticmethod
    def _failure(error_msg: str, user_message: str) -> Dict[str, Any]:
        return {
            'success': False,
            'error': error_msg,
            'user_message': user_message
        }

    @staticmethod
    def _success(message: str, user_message: str) -> Dict[str, Any]:
        return {
            'success': True,
            'message': message,
            'user_message': user_message
        }

    def set_working_set_size(self, size: int) -> Dict[str, Any]:
        """
        Set the maximum number of questions drawn for a session.

        Args:
            size: Maximum working set size

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(size, int) or isinstance(size, bool):
            error_msg = f"Working set size must be an integer, got {type(size).__name__}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Invalid input: Expected a number, got {type(size).__name__}")

        if size < self.MIN_WORKING_SET_SIZE:
            error_msg = f"Working set size must be at least {self.MIN_WORKING_SET_SIZE}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Too few questions: Minimum is {self.MIN_WORKING_SET_SIZE}")

        if size > self.MAX_WORKING_SET_SIZE:
            error_msg = f"Working set size cannot exceed {self.MAX_WORKING_SET_SIZE}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Too many questions: Maximum is {self.MAX_WORKING_SET_SIZE}")

        self._settings.working_set_size = size
        self.logger.info(f"Working set size set to {size}")
        return self._success(f"Working set size set to {size}", f"✅ Sessions will use up to {size} questions")

    def set_feedback_delay(self, delay: Optional[float]) -> Dict[str, Any]:
        """
        Set how long feedback stays on screen before moving to the next question.

        Args:
            delay: Delay in seconds, or None to require an explicit advance

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if delay is None:
            self._settings.feedback_delay = None
            self.logger.info("Automatic advance disabled")
            return self._success("Automatic advance disabled", "✅ Questions advance only when you press Next")

        if not isinstance(delay, (int, float)) or isinstance(delay, bool):
            error_msg = f"Feedback delay must be a number, got {type(delay).__name__}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Invalid input: Expected a number, got {type(delay).__name__}")

        if not self.MIN_FEEDBACK_DELAY <= delay <= self.MAX_FEEDBACK_DELAY:
            error_msg = (
                f"Feedback delay must be between {self.MIN_FEEDBACK_DELAY} "
                f"and {self.MAX_FEEDBACK_DELAY} seconds"
            )
            self.logger.error(error_msg)
            return self._failure(
                error_msg,
                f"❌ Delay out of range: Use {self.MIN_FEEDBACK_DELAY:g}-{self.MAX_FEEDBACK_DELAY:g} seconds"
            )

        self._settings.feedback_delay = float(delay)
        self.logger.info(f"Feedback delay set to {delay} seconds")
        return self._success(f"Feedback delay set to {delay} seconds", f"✅ Feedback shown for {delay:g} seconds")

    def set_media_ready_timeout(self, timeout: float) -> Dict[str, Any]:
        """
        Set the bounded wait for audio to become ready.

        Args:
            timeout: Timeout in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool):
            error_msg = f"Media ready timeout must be a number, got {type(timeout).__name__}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Invalid input: Expected a number, got {type(timeout).__name__}")

        if not self.MIN_MEDIA_READY_TIMEOUT <= timeout <= self.MAX_MEDIA_READY_TIMEOUT:
            error_msg = (
                f"Media ready timeout must be between {self.MIN_MEDIA_READY_TIMEOUT} "
                f"and {self.MAX_MEDIA_READY_TIMEOUT} seconds"
            )
            self.logger.error(error_msg)
            return self._failure(
                error_msg,
                f"❌ Timeout out of range: Use {self.MIN_MEDIA_READY_TIMEOUT:g}-{self.MAX_MEDIA_READY_TIMEOUT:g} seconds"
            )

        self._settings.media_ready_timeout = float(timeout)
        self.logger.info(f"Media ready timeout set to {timeout} seconds")
        return self._success(f"Media ready timeout set to {timeout} seconds", f"✅ Audio timeout set to {timeout:g} seconds")

    def set_questions_file(self, questions_file: Optional[str]) -> Dict[str, Any]:
        """
        Set the path of the question file.

        Args:
            questions_file: Path to a JSON question file, or None for the bundled file

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if questions_file is None:
            self._settings.questions_file = None
            self.logger.info("Using bundled question file")
            return self._success("Using bundled question file", "✅ Using the bundled questions")

        if not isinstance(questions_file, str):
            error_msg = f"Questions file must be a string, got {type(questions_file).__name__}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Invalid input: Expected a path string, got {type(questions_file).__name__}")

        if not questions_file.strip():
            error_msg = "Questions file cannot be empty"
            self.logger.error(error_msg)
            return self._failure(error_msg, "❌ File path cannot be empty")

        try:
            normalized_path = str(Path(questions_file).expanduser().resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid questions file path: {e}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Invalid path format: {questions_file}")

        self._settings.questions_file = normalized_path
        self.logger.info(f"Questions file set to {normalized_path}")
        return self._success(f"Questions file set to {normalized_path}", f"✅ Questions file set to {normalized_path}")

    def apply_config(self, quiz_config: Dict[str, Any]) -> List[str]:
        """
        Apply the 'quiz' section of config.json.

        Invalid values are logged and skipped so the defaults stay in effect.

        Args:
            quiz_config: Mapping read from the configuration file

        Returns:
            List of error messages for values that were rejected
        """
        setters = {
            'working_set_size': self.set_working_set_size,
            'feedback_delay': self.set_feedback_delay,
            'media_ready_timeout': self.set_media_ready_timeout,
            'questions_file': self.set_questions_file,
        }
        errors = []
        for key, value in quiz_config.items():
            setter = setters.get(key)
            if setter is None:
                self.logger.warning(f"Ignoring unknown quiz setting '{key}'")
                continue
            result = setter(value)
            if not result['success']:
                errors.append(result['error'])
        return errors

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        delay_str = (
            f"{self._settings.feedback_delay:g} seconds"
            if self._settings.feedback_delay is not None
            else "manual"
        )
        return (
            f"Trivia Settings:\n"
            f"• Questions per session: up to {self._settings.working_set_size}\n"
            f"• Feedback delay: {delay_str}\n"
            f"• Audio timeout: {self._settings.media_ready_timeout:g} seconds\n"
            f"• Questions file: {self._settings.questions_file or 'bundled'}"
        )
