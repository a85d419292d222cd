"""
Unit tests for the JSON-backed QuizStore.
"""
import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from trivia_cli.data_manager import (
    SAMPLE_QUIZZES, QuizStore, QuizStoreError, QuizValidationError
)
from trivia_cli.models import Quiz
from tests.test_fixtures import QuizFixtures


class TestQuizStoreLoading(unittest.TestCase):
    """Test cases for loading the quiz file."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.quiz_file = Path(self.temp_dir) / "quizzes.json"

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_missing_file_is_created_with_samples(self):
        store = QuizStore(str(self.quiz_file))

        quizzes = store.load()

        self.assertTrue(self.quiz_file.exists())
        self.assertEqual(len(quizzes), len(SAMPLE_QUIZZES))
        self.assertEqual([q.id for q in quizzes], [1, 2, 3, 4])
        self.assertFalse(store.has_load_errors())

        with open(self.quiz_file, encoding='utf-8') as f:
            data = json.load(f)
        self.assertEqual(data["next_id"], 5)
        self.assertEqual(data["quizzes"][0]["answer"], "Rome")

    def test_missing_file_without_samples(self):
        store = QuizStore(str(self.quiz_file), seed_samples=False)

        self.assertEqual(store.load(), [])
        self.assertTrue(self.quiz_file.exists())

    def test_missing_parent_directory_is_created(self):
        nested = Path(self.temp_dir) / "data" / "quizzes.json"
        store = QuizStore(str(nested))

        store.load()

        self.assertTrue(nested.exists())

    def test_load_valid_file(self):
        QuizFixtures.write_store_file(self.quiz_file, QuizFixtures.create_valid_store_json())
        store = QuizStore(str(self.quiz_file))

        quizzes = store.load()

        self.assertEqual(quizzes, [
            Quiz(1, "What is 2+2", "4"),
            Quiz(3, "Capital of Japan", "Tokyo"),
        ])
        self.assertEqual(store.find_by_id(3).answer, "Tokyo")

    def test_next_id_never_below_highest_id(self):
        data = QuizFixtures.create_valid_store_json()
        data["next_id"] = 2
        QuizFixtures.write_store_file(self.quiz_file, data)
        store = QuizStore(str(self.quiz_file))
        store.load()

        quiz = store.create("New question", "New answer")

        self.assertEqual(quiz.id, 4)

    def test_invalid_json_activates_read_only_fallback(self):
        with open(self.quiz_file, 'w') as f:
            f.write("{ invalid json }")
        store = QuizStore(str(self.quiz_file))

        quizzes = store.load()

        self.assertEqual(quizzes, [])
        self.assertTrue(store.fallback_active)
        self.assertTrue(store.has_load_errors())
        with self.assertRaises(QuizStoreError):
            store.create("Question", "Answer")
        # The broken file is left alone
        with open(self.quiz_file) as f:
            self.assertEqual(f.read(), "{ invalid json }")

    def test_invalid_structures_are_rejected(self):
        store = QuizStore(str(self.quiz_file))
        for data in QuizFixtures.create_invalid_store_json_structures():
            QuizFixtures.write_store_file(self.quiz_file, data)

            quizzes = store.load()

            self.assertEqual(quizzes, [], f"Structure should be rejected: {data}")
            self.assertTrue(store.fallback_active)

    def test_validate_store_structure_valid(self):
        store = QuizStore(str(self.quiz_file))
        self.assertEqual(store.validate_store_structure(QuizFixtures.create_valid_store_json()), [])

    def test_oversized_file_rejected(self):
        QuizFixtures.write_store_file(self.quiz_file, QuizFixtures.create_valid_store_json())
        store = QuizStore(str(self.quiz_file))

        with patch.object(QuizStore, 'MAX_FILE_SIZE', 10):
            self.assertEqual(store.load(), [])

        self.assertIn("too large", store.get_load_errors()[0])

    def test_reload_clears_previous_errors(self):
        with open(self.quiz_file, 'w') as f:
            f.write("not json")
        store = QuizStore(str(self.quiz_file))
        store.load()
        self.assertTrue(store.has_load_errors())

        QuizFixtures.write_store_file(self.quiz_file, QuizFixtures.create_valid_store_json())
        store.load()

        self.assertFalse(store.has_load_errors())
        self.assertFalse(store.fallback_active)
        self.assertEqual(store.get_quiz_count(), 2)

    def test_loading_summary(self):
        store = QuizStore(str(self.quiz_file))
        store.load()

        summary = store.get_loading_summary()

        self.assertEqual(summary['total_quizzes'], 4)
        self.assertFalse(summary['has_errors'])
        self.assertFalse(summary['fallback_active'])
        self.assertEqual(summary['quiz_file'], str(self.quiz_file))


class TestQuizStoreOperations(unittest.TestCase):
    """Test cases for quiz CRUD operations."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.quiz_file = Path(self.temp_dir) / "quizzes.json"
        self.store = QuizStore(str(self.quiz_file))
        self.store.load()

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _reloaded(self) -> QuizStore:
        store = QuizStore(str(self.quiz_file))
        store.load()
        return store

    def test_find_by_id_missing(self):
        self.assertIsNone(self.store.find_by_id(42))

    def test_find_all_returns_snapshot(self):
        snapshot = self.store.find_all()
        self.store.create("Capital of Greece", "Athens")

        self.assertEqual(len(snapshot), 4)
        self.assertEqual(len(self.store.find_all()), 5)

    def test_create_assigns_new_id_and_persists(self):
        quiz = self.store.create("Capital of Greece", "Athens")

        self.assertEqual(quiz, Quiz(5, "Capital of Greece", "Athens"))
        self.assertEqual(self._reloaded().find_by_id(5), quiz)

    def test_create_rejects_empty_fields(self):
        with self.assertRaises(QuizValidationError) as context:
            self.store.create("  ", "")

        self.assertEqual(context.exception.errors, [
            "The question must not be empty.",
            "The answer must not be empty.",
        ])
        self.assertEqual(self.store.get_quiz_count(), 4)

    def test_ids_are_not_reused(self):
        self.store.destroy(4)
        quiz = self.store.create("Capital of Greece", "Athens")

        self.assertEqual(quiz.id, 5)

    def test_update_replaces_record(self):
        quiz = self.store.update(2, "Capital of Germany", "Berlin")

        self.assertEqual(quiz, Quiz(2, "Capital of Germany", "Berlin"))
        self.assertEqual(self._reloaded().find_by_id(2).answer, "Berlin")

    def test_update_missing_quiz(self):
        with self.assertRaises(QuizStoreError) as context:
            self.store.update(42, "Question", "Answer")

        self.assertIn("id=42", str(context.exception))

    def test_update_rejects_empty_fields(self):
        with self.assertRaises(QuizValidationError):
            self.store.update(1, "Capital of Italy", " ")

        self.assertEqual(self.store.find_by_id(1).answer, "Rome")

    def test_destroy(self):
        self.assertTrue(self.store.destroy(1))
        self.assertIsNone(self.store.find_by_id(1))
        self.assertIsNone(self._reloaded().find_by_id(1))

    def test_destroy_missing_quiz(self):
        self.assertFalse(self.store.destroy(42))

    def test_failed_write_rolls_back(self):
        with patch('trivia_cli.data_manager.os.replace', side_effect=OSError("disk full")):
            with self.assertRaises(QuizStoreError):
                self.store.create("Capital of Greece", "Athens")
            with self.assertRaises(QuizStoreError):
                self.store.destroy(1)

        self.assertEqual(self.store.get_quiz_count(), 4)
        self.assertIsNotNone(self.store.find_by_id(1))
        self.assertEqual(self.store.create("Capital of Greece", "Athens").id, 5)
        # No temporary files are left behind
        self.assertEqual(os.listdir(self.temp_dir), ["quizzes.json"])


if __name__ == '__main__':
    unittest.main()
