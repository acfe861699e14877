"""
Question store for loading and validating the bundled trivia question file.
"""
import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

from .models import Question, QuestionMetadata


DEFAULT_QUESTIONS_FILE = Path(__file__).parent / "data" / "questions.json"

ALLOWED_URL_SCHEMES = ("http", "https", "file")

REQUIRED_STRING_FIELDS = ("id", "audioURL", "questionText", "correctAnswer")
REQUIRED_METADATA_STRING_FIELDS = ("songTitle", "artist", "album", "genre", "difficulty")

# Answer buttons fill at most three rows of five under the play button
MAX_OPTIONS = 15


class QuestionStoreError(Exception):
    """Base exception for question store errors."""
    pass


class DataUnavailable(QuestionStoreError):
    """Raised when the question resource cannot be located or read."""
    pass


class DecodeError(QuestionStoreError):
    """Raised when the question resource does not conform to the schema."""
    pass


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid offset; json.loads also yields NaN and Infinity
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return math.isfinite(value)


class QuestionStore:
    """Loads the fixed-schema question collection from a bundled JSON file."""

    # Refuse to parse anything unreasonably large
    MAX_FILE_SIZE = 10 * 1024 * 1024

    def __init__(self, questions_file: Optional[Union[str, Path]] = None):
        """
        Initialize the store with the path of the question file.

        Args:
            questions_file: Path to the JSON question file, defaults to the bundled file
        """
        self.questions_file = Path(questions_file) if questions_file else DEFAULT_QUESTIONS_FILE
        self.logger = logging.getLogger(__name__)

    def load(self) -> List[Question]:
        """
        Load every question record from the question file.

        Records are returned unfiltered and in file order; shuffling and
        truncation belong to the session controller.

        Returns:
            List of Question objects

        Raises:
            DataUnavailable: If the file cannot be located or read
            DecodeError: If the content is not valid JSON or violates the schema
        """
        raw_text = self._read_resource()

        try:
            data = json.loads(raw_text)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {self.questions_file}: {e}")
            raise DecodeError(f"Invalid JSON in question file: {e}") from e

        questions = self.parse_questions(data)

        self.logger.info(f"Loaded {len(questions)} questions from {self.questions_file}")
        return questions

    def _read_resource(self) -> str:
        """Read the raw file contents, mapping filesystem failures to DataUnavailable."""
        if not self.questions_file.is_file():
            self.logger.error(f"Question file not found: {self.questions_file}")
            raise DataUnavailable(f"Question file not found: {self.questions_file}")

        try:
            file_size = self.questions_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                raise DataUnavailable(
                    f"Question file too large ({file_size / 1024 / 1024:.1f}MB). "
                    f"Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB"
                )
            with open(self.questions_file, 'r', encoding='utf-8') as f:
                return f.read()
        except PermissionError as e:
            self.logger.error(f"Permission denied reading {self.questions_file}")
            raise DataUnavailable(f"Permission denied: {self.questions_file}") from e
        except UnicodeDecodeError as e:
            self.logger.error(f"Question file is not valid UTF-8: {self.questions_file}")
            raise DecodeError(f"Question file is not valid UTF-8: {e}") from e
        except OSError as e:
            self.logger.error(f"Failed to read question file {self.questions_file}: {e}")
            raise DataUnavailable(f"Failed to read question file: {e}") from e

    def parse_questions(self, data: Any) -> List[Question]:
        """
        Validate decoded JSON data and convert it into Question objects.

        Expected structure:
        [
            {
                "id": str,
                "audioURL": str,
                "startTime": number,
                "endTime": number,
                "questionText": str,
                "options": [str, ...],
                "correctAnswer": str,
                "metadata": {...}
            }
        ]

        Args:
            data: Decoded JSON document

        Returns:
            List of Question objects

        Raises:
            DecodeError: On the first schema violation found
        """
        if not isinstance(data, list):
            self.logger.error("Question data must be a JSON array")
            raise DecodeError("Question data must be a JSON array")

        questions = []
        seen_ids = set()
        for i, record in enumerate(data):
            self.validate_question_data(record, i)
            if record["id"] in seen_ids:
                self.logger.error(f"Question {i} has duplicate id '{record['id']}'")
                raise DecodeError(f"Question {i}: duplicate id '{record['id']}'")
            seen_ids.add(record["id"])
            questions.append(self._build_question(record))

        return questions

    def validate_question_data(self, record: Any, index: int = 0) -> None:
        """
        Validate a single question record.

        Args:
            record: Decoded JSON object for one question
            index: Position of the record, used in error messages

        Raises:
            DecodeError: If the record violates the schema
        """
        def fail(reason: str) -> None:
            self.logger.error(f"Question {index} {reason}")
            raise DecodeError(f"Question {index}: {reason}")

        if not isinstance(record, dict):
            fail("must be an object")

        for field_name in REQUIRED_STRING_FIELDS:
            if field_name not in record:
                fail(f"missing '{field_name}' field")
            if not isinstance(record[field_name], str):
                fail(f"'{field_name}' field must be a string")

        for field_name in ("startTime", "endTime"):
            if field_name not in record:
                fail(f"missing '{field_name}' field")
            if not _is_number(record[field_name]):
                fail(f"'{field_name}' field must be a finite number")

        if record["startTime"] < 0:
            fail("'startTime' cannot be negative")
        if record["endTime"] <= record["startTime"]:
            fail("'endTime' must be greater than 'startTime'")

        if not self._is_valid_url(record["audioURL"]):
            fail(f"'audioURL' is not a valid URL: {record['audioURL']!r}")

        options = record.get("options")
        if "options" not in record:
            fail("missing 'options' field")
        if not isinstance(options, list):
            fail("'options' field must be an array")
        if not options:
            fail("'options' cannot be empty")
        if len(options) > MAX_OPTIONS:
            fail(f"'options' cannot have more than {MAX_OPTIONS} entries")
        if not all(isinstance(option, str) for option in options):
            fail("'options' must contain only strings")
        if not all(option.strip() for option in options):
            fail("'options' cannot contain blank entries")
        if options.count(record["correctAnswer"]) != 1:
            fail("'options' must contain 'correctAnswer' exactly once")

        if "metadata" not in record:
            fail("missing 'metadata' field")
        metadata = record["metadata"]
        if not isinstance(metadata, dict):
            fail("'metadata' field must be an object")
        for field_name in REQUIRED_METADATA_STRING_FIELDS:
            if not isinstance(metadata.get(field_name), str):
                fail(f"'metadata.{field_name}' must be a string")
        release_year = metadata.get("releaseYear")
        if not isinstance(release_year, int) or isinstance(release_year, bool):
            fail("'metadata.releaseYear' must be an integer")

    @staticmethod
    def _is_valid_url(value: str) -> bool:
        parsed = urlparse(value)
        if parsed.scheme not in ALLOWED_URL_SCHEMES:
            return False
        if parsed.scheme == "file":
            return bool(parsed.path)
        return bool(parsed.netloc)

    @staticmethod
    def _build_question(record: Dict[str, Any]) -> Question:
        metadata = record["metadata"]
        return Question(
            id=record["id"],
            audio_url=record["audioURL"],
            start_time=float(record["startTime"]),
            end_time=float(record["endTime"]),
            question_text=record["questionText"],
            options=list(record["options"]),
            correct_answer=record["correctAnswer"],
            metadata=QuestionMetadata(
                song_title=metadata["songTitle"],
                artist=metadata["artist"],
                album=metadata["album"],
                release_year=metadata["releaseYear"],
                genre=metadata["genre"],
                difficulty=metadata["difficulty"]
            )
        )
