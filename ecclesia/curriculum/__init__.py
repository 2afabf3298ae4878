"""Foundation School curriculum: modules, lessons and quizzes."""

from .models import CURRICULUM_TABLES_CQL, FoundationModule, Lesson, QuizQuestion


__all__ = ["CURRICULUM_TABLES_CQL", "FoundationModule", "Lesson", "QuizQuestion"]
