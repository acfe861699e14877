"""
Unit tests for QuestionStore class.
"""
import json
import shutil
import tempfile
import unittest
from pathlib import Path

from tune_trivia.models import Question
from tune_trivia.question_store import (
    DEFAULT_QUESTIONS_FILE,
    DataUnavailable,
    DecodeError,
    MAX_OPTIONS,
    QuestionStore,
    QuestionStoreError,
)
from tests.test_fixtures import TestFixtures


class TestQuestionStoreLoading(unittest.TestCase):
    """Test cases for loading question files."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load_valid_file_returns_all_records_in_order(self):
        """Store output is unfiltered and unshuffled."""
        records = TestFixtures.create_question_records(15)
        path = TestFixtures.write_questions_file(self.temp_dir, records)

        questions = QuestionStore(path).load()

        self.assertEqual(len(questions), 15)
        self.assertEqual([q.id for q in questions], [r["id"] for r in records])
        self.assertIsInstance(questions[0], Question)

    def test_load_is_deterministic(self):
        path = TestFixtures.write_questions_file(self.temp_dir, TestFixtures.create_question_records(5))
        store = QuestionStore(path)

        self.assertEqual(store.load(), store.load())

    def test_load_maps_fields(self):
        record = TestFixtures.create_question_record(7, startTime=3, endTime=13.5)
        path = TestFixtures.write_questions_file(self.temp_dir, [record])

        question = QuestionStore(path).load()[0]

        self.assertEqual(question.id, "q007")
        self.assertEqual(question.audio_url, "https://media.example.com/clips/song-7.m4a")
        self.assertEqual(question.start_time, 3.0)
        self.assertEqual(question.end_time, 13.5)
        self.assertEqual(question.clip_duration, 10.5)
        self.assertEqual(question.question_text, "Who sings song 7?")
        self.assertEqual(question.correct_answer, "Artist 7")
        self.assertEqual(question.metadata.song_title, "Song 7")
        self.assertEqual(question.metadata.release_year, 1997)

    def test_load_empty_array(self):
        path = TestFixtures.write_questions_file(self.temp_dir, [])
        self.assertEqual(QuestionStore(path).load(), [])

    def test_non_finite_offsets_in_file_raise_decode_error(self):
        """json.loads accepts NaN and Infinity literals; the store must not."""
        cases = [
            ('"startTime": 10.0', '"startTime": NaN'),
            ('"endTime": 20.0', '"endTime": Infinity'),
            ('"startTime": 10.0', '"startTime": -Infinity'),
        ]
        for original, replacement in cases:
            with self.subTest(replacement=replacement):
                text = json.dumps([TestFixtures.create_question_record(1)]).replace(original, replacement)
                path = TestFixtures.write_questions_file(self.temp_dir, text)
                with self.assertRaises(DecodeError):
                    QuestionStore(path).load()

    def test_missing_file_raises_data_unavailable(self):
        store = QuestionStore(Path(self.temp_dir) / "missing.json")

        with self.assertRaises(DataUnavailable):
            store.load()

    def test_directory_path_raises_data_unavailable(self):
        with self.assertRaises(DataUnavailable):
            QuestionStore(self.temp_dir).load()

    def test_invalid_json_raises_decode_error(self):
        path = TestFixtures.write_questions_file(self.temp_dir, "{ invalid json }")

        with self.assertRaises(DecodeError):
            QuestionStore(path).load()

    def test_errors_share_base_class(self):
        self.assertTrue(issubclass(DataUnavailable, QuestionStoreError))
        self.assertTrue(issubclass(DecodeError, QuestionStoreError))

    def test_bundled_file_loads(self):
        """The shipped question file conforms to the schema."""
        store = QuestionStore()
        self.assertEqual(store.questions_file, DEFAULT_QUESTIONS_FILE)

        questions = store.load()

        self.assertGreaterEqual(len(questions), 10)
        self.assertEqual(len({q.id for q in questions}), len(questions))


class TestQuestionStoreValidation(unittest.TestCase):
    """Test cases for schema validation."""

    def setUp(self):
        self.store = QuestionStore()

    def assertRejected(self, data):
        with self.assertRaises(DecodeError):
            self.store.parse_questions(data)

    def test_top_level_must_be_array(self):
        self.assertRejected({"questions": TestFixtures.create_question_records(1)})

    def test_record_must_be_object(self):
        self.assertRejected(["not an object"])

    def test_missing_required_fields(self):
        for field_name in ("id", "audioURL", "startTime", "endTime", "questionText",
                           "options", "correctAnswer", "metadata"):
            with self.subTest(field=field_name):
                record = TestFixtures.create_question_record(1)
                del record[field_name]
                self.assertRejected([record])

    def test_wrong_field_types(self):
        cases = [
            {"id": 1},
            {"questionText": None},
            {"startTime": "10"},
            {"endTime": True},
            {"options": "Artist 1"},
            {"options": ["Artist 1", 2]},
            {"metadata": "none"},
        ]
        for override in cases:
            with self.subTest(override=override):
                self.assertRejected([TestFixtures.create_question_record(1, **override)])

    def test_metadata_release_year_must_be_int(self):
        record = TestFixtures.create_question_record(1)
        record["metadata"]["releaseYear"] = "1991"
        self.assertRejected([record])

    def test_metadata_missing_field(self):
        record = TestFixtures.create_question_record(1)
        del record["metadata"]["genre"]
        self.assertRejected([record])

    def test_malformed_urls(self):
        for url in ("not a url", "ftp://media.example.com/a.m4a", "https://", ""):
            with self.subTest(url=url):
                self.assertRejected([TestFixtures.create_question_record(1, audioURL=url)])

    def test_file_url_accepted(self):
        record = TestFixtures.create_question_record(1, audioURL="file:///tmp/clip.m4a")
        self.assertEqual(len(self.store.parse_questions([record])), 1)

    def test_end_time_must_exceed_start_time(self):
        self.assertRejected([TestFixtures.create_question_record(1, startTime=20, endTime=20)])
        self.assertRejected([TestFixtures.create_question_record(1, startTime=20, endTime=10)])

    def test_negative_start_time(self):
        self.assertRejected([TestFixtures.create_question_record(1, startTime=-1, endTime=5)])

    def test_empty_options(self):
        self.assertRejected([TestFixtures.create_question_record(1, options=[])])

    def test_non_finite_offsets(self):
        for override in ({"startTime": float("nan")},
                         {"endTime": float("inf")},
                         {"startTime": float("nan"), "endTime": float("nan")}):
            with self.subTest(override=override):
                self.assertRejected([TestFixtures.create_question_record(1, **override)])

    def test_blank_option_text(self):
        for blank in ("", "   "):
            with self.subTest(blank=blank):
                self.assertRejected([TestFixtures.create_question_record(
                    1, options=["Artist 1", blank, "Nobody"]
                )])

    def test_option_count_limit(self):
        options = ["Artist 1"] + [f"Other {i}" for i in range(MAX_OPTIONS - 1)]
        self.assertEqual(len(self.store.parse_questions(
            [TestFixtures.create_question_record(1, options=options)]
        )), 1)

        self.assertRejected([TestFixtures.create_question_record(1, options=options + ["One too many"])])

    def test_correct_answer_must_appear_exactly_once(self):
        self.assertRejected([TestFixtures.create_question_record(1, options=["A", "B"])])
        self.assertRejected([TestFixtures.create_question_record(
            1, options=["Artist 1", "Artist 1", "B"]
        )])

    def test_correct_answer_is_case_sensitive(self):
        self.assertRejected([TestFixtures.create_question_record(1, correctAnswer="artist 1")])

    def test_duplicate_ids(self):
        first = TestFixtures.create_question_record(1)
        second = TestFixtures.create_question_record(2, id="q001")
        self.assertRejected([first, second])

    def test_error_message_names_record_index(self):
        records = TestFixtures.create_question_records(3)
        records[2]["options"] = []

        with self.assertRaises(DecodeError) as context:
            self.store.parse_questions(records)

        self.assertIn("Question 2", str(context.exception))

    def test_validate_question_data_accepts_valid_record(self):
        self.store.validate_question_data(TestFixtures.create_question_record(1))

    def test_invalid_file_content_round_trip(self):
        """A file with one bad record fails as a whole."""
        temp_dir = tempfile.mkdtemp()
        try:
            records = TestFixtures.create_question_records(3)
            records[1]["audioURL"] = "bad"
            path = TestFixtures.write_questions_file(temp_dir, json.dumps(records))
            with self.assertRaises(DecodeError):
                QuestionStore(path).load()
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)


if __name__ == '__main__':
    unittest.main()
