"""
Quiz store backed by a JSON file, with record validation.
"""
import json
import os
import logging
import tempfile
from typing import Dict, List, Optional
from pathlib import Path

from .models import Quiz


SAMPLE_QUIZZES = [
    {"question": "Capital of Italy", "answer": "Rome"},
    {"question": "Capital of France", "answer": "Paris"},
    {"question": "Capital of Spain", "answer": "Madrid"},
    {"question": "Capital of Portugal", "answer": "Lisbon"},
]


class QuizStoreError(Exception):
    """Raised when the quiz file cannot be read or written."""
    pass


class QuizValidationError(QuizStoreError):
    """Raised when a quiz record has invalid fields."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class QuizStore:
    """Holds quiz records and persists them to a JSON file."""

    # Refuse to load anything bigger than this
    MAX_FILE_SIZE = 10 * 1024 * 1024

    def __init__(self, quiz_file: str = "./quizzes.json", seed_samples: bool = True):
        """
        Initialize the store with the path of its JSON file.

        Args:
            quiz_file: Path to the JSON file holding the quizzes
            seed_samples: Write sample quizzes when the file does not exist yet
        """
        self.quiz_file = Path(quiz_file)
        self.seed_samples = seed_samples
        self.logger = logging.getLogger(__name__)
        self._quizzes: Dict[int, Quiz] = {}
        self._next_id = 1
        self.load_errors: List[str] = []
        self.fallback_active = False

    def load(self) -> List[Quiz]:
        """
        Load quizzes from the JSON file, creating it if needed.

        Returns:
            List of loaded quizzes
        """
        self._quizzes.clear()
        self._next_id = 1
        self.load_errors.clear()
        self.fallback_active = False

        if not self.quiz_file.exists():
            self.logger.warning(f"Quiz file not found: {self.quiz_file}")
            self._create_initial_file()
            return self.find_all()

        try:
            file_size = self.quiz_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                raise QuizStoreError(
                    f"File too large ({file_size / 1024 / 1024:.1f}MB). "
                    f"Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB"
                )
            with open(self.quiz_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self._parse_store(data)
        except json.JSONDecodeError as e:
            return self._activate_fallback(f"Invalid JSON in {self.quiz_file}: {e}")
        except (QuizStoreError, OSError) as e:
            return self._activate_fallback(f"Failed to read quiz file {self.quiz_file}: {e}")

        self.logger.info(f"Loaded {len(self._quizzes)} quizzes from {self.quiz_file}")
        return self.find_all()

    def validate_store_structure(self, data) -> List[str]:
        """
        Check that parsed JSON data has the store structure.

        Expected structure:
        {
            "quizzes": [
                {"id": int, "question": str, "answer": str}
            ],
            "next_id": int   # Optional
        }

        Returns:
            List of problems found, empty when the data is valid
        """
        if not isinstance(data, dict):
            return ["Quiz data must be a JSON object"]
        if "quizzes" not in data:
            return ["Quiz data must contain a 'quizzes' key"]
        if not isinstance(data["quizzes"], list):
            return ["'quizzes' value must be an array"]
        if "next_id" in data and not isinstance(data["next_id"], int):
            return ["'next_id' value must be an integer"]

        problems = []
        seen_ids = set()
        for i, record in enumerate(data["quizzes"]):
            if not isinstance(record, dict):
                problems.append(f"Quiz {i} must be an object")
                continue
            quiz_id = record.get("id")
            if not isinstance(quiz_id, int) or isinstance(quiz_id, bool):
                problems.append(f"Quiz {i} 'id' field must be an integer")
            elif quiz_id in seen_ids:
                problems.append(f"Quiz {i} repeats id {quiz_id}")
            else:
                seen_ids.add(quiz_id)
            problems.extend(f"Quiz {i}: {message}" for message in self.validate_fields(
                record.get("question"), record.get("answer")
            ))
        return problems

    def validate_fields(self, question, answer) -> List[str]:
        """Return one message per invalid quiz field."""
        errors = []
        if not isinstance(question, str) or not question.strip():
            errors.append("The question must not be empty.")
        if not isinstance(answer, str) or not answer.strip():
            errors.append("The answer must not be empty.")
        return errors

    def _parse_store(self, data) -> None:
        problems = self.validate_store_structure(data)
        if problems:
            for problem in problems:
                self.logger.error(problem)
            raise QuizStoreError(f"Invalid quiz file structure: {problems[0]}")

        for record in data["quizzes"]:
            quiz = Quiz(id=record["id"], question=record["question"], answer=record["answer"])
            self._quizzes[quiz.id] = quiz

        highest = max(self._quizzes, default=0)
        self._next_id = max(data.get("next_id", 1), highest + 1)

    def _create_initial_file(self) -> None:
        if self.seed_samples:
            for sample in SAMPLE_QUIZZES:
                quiz = Quiz(id=self._next_id, question=sample["question"], answer=sample["answer"])
                self._quizzes[quiz.id] = quiz
                self._next_id += 1
        try:
            self._save()
            self.logger.info(f"Created quiz file {self.quiz_file} with {len(self._quizzes)} quizzes")
        except QuizStoreError as e:
            self.load_errors.append(str(e))
            self.logger.error(f"Failed to create quiz file: {e}")

    def _activate_fallback(self, error: str) -> List[Quiz]:
        """Switch to an empty read-only store so the broken file is left alone."""
        self.logger.error(error)
        self.load_errors.append(error)
        self._quizzes.clear()
        self.fallback_active = True
        self.logger.warning("Using an empty read-only quiz store due to loading failures")
        return []

    def _save(self) -> None:
        data = {
            "quizzes": [
                {"id": q.id, "question": q.question, "answer": q.answer}
                for q in sorted(self._quizzes.values(), key=lambda q: q.id)
            ],
            "next_id": self._next_id
        }
        tmp_path = None
        try:
            self.quiz_file.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.quiz_file.name}.", dir=str(self.quiz_file.parent)
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.quiz_file)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise QuizStoreError(f"Failed to write quiz file {self.quiz_file}: {e}") from e

    def _check_writable(self) -> None:
        if self.fallback_active:
            raise QuizStoreError(
                f"The quiz store is read-only because {self.quiz_file} could not be loaded"
            )

    def find_by_id(self, quiz_id: int) -> Optional[Quiz]:
        """
        Retrieve a quiz by id.

        Returns:
            The quiz, or None if no quiz has that id
        """
        return self._quizzes.get(quiz_id)

    def find_all(self) -> List[Quiz]:
        """
        Get a snapshot of every stored quiz, ordered by id.

        Returns:
            New list of quizzes; later store changes do not affect it
        """
        return sorted(self._quizzes.values(), key=lambda q: q.id)

    def create(self, question: str, answer: str) -> Quiz:
        """
        Add a quiz and persist the store.

        Raises:
            QuizValidationError: If the question or answer is empty
            QuizStoreError: If the store cannot be written
        """
        self._check_writable()
        errors = self.validate_fields(question, answer)
        if errors:
            raise QuizValidationError(errors)

        quiz = Quiz(id=self._next_id, question=question, answer=answer)
        self._quizzes[quiz.id] = quiz
        self._next_id += 1
        try:
            self._save()
        except QuizStoreError:
            del self._quizzes[quiz.id]
            self._next_id -= 1
            raise
        self.logger.info(f"Created quiz {quiz.id}")
        return quiz

    def update(self, quiz_id: int, question: str, answer: str) -> Quiz:
        """
        Replace the question and answer of an existing quiz.

        Raises:
            QuizStoreError: If the quiz does not exist or the store cannot be written
            QuizValidationError: If the question or answer is empty
        """
        self._check_writable()
        previous = self._quizzes.get(quiz_id)
        if previous is None:
            raise QuizStoreError(f"No quiz associated with id={quiz_id}.")
        errors = self.validate_fields(question, answer)
        if errors:
            raise QuizValidationError(errors)

        quiz = Quiz(id=quiz_id, question=question, answer=answer)
        self._quizzes[quiz_id] = quiz
        try:
            self._save()
        except QuizStoreError:
            self._quizzes[quiz_id] = previous
            raise
        self.logger.info(f"Updated quiz {quiz_id}")
        return quiz

    def destroy(self, quiz_id: int) -> bool:
        """
        Delete a quiz.

        Returns:
            True if a quiz was deleted, False if none had that id
        """
        self._check_writable()
        previous = self._quizzes.pop(quiz_id, None)
        if previous is None:
            return False
        try:
            self._save()
        except QuizStoreError:
            self._quizzes[quiz_id] = previous
            raise
        self.logger.info(f"Deleted quiz {quiz_id}")
        return True

    def get_quiz_count(self) -> int:
        return len(self._quizzes)

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, any]:
        """
        Get a summary of the last load operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_quizzes': len(self._quizzes),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'fallback_active': self.fallback_active,
            'quiz_file': str(self.quiz_file)
        }
