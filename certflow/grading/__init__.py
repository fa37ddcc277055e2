"""Grading engine: scores quiz answers without side effects."""

from .engine import GRADE_BANDS, GradeResult, QuestionResult, grade, letter_grade


__all__ = ["GRADE_BANDS", "GradeResult", "QuestionResult", "grade", "letter_grade"]
