"""Exceptions raised inside the grading pipeline."""


class GradingError(Exception):
    """Base class for errors that fail a grading job."""


class UnsupportedQuestionType(GradingError):
    def __init__(self, question_id, question_type):
        self.question_id = question_id
        self.question_type = question_type
        super().__init__(f"Unsupported question type '{question_type}' for question {question_id}")


class ResultPersistenceError(GradingError):
    """Grading finished but the exam result could not be stored."""
