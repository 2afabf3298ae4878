"""Foundation School assignment submissions and grading."""

from .models import ASSIGNMENTS_TABLES_CQL, Submission, SubmissionStatus


__all__ = ["ASSIGNMENTS_TABLES_CQL", "Submission", "SubmissionStatus"]
