"""Import/export of quizzes as JSON and Word documents."""

from .docx_generator import export_quiz_with_separate_answers, export_to_docx
from .json_io import dump_quiz_json, export_quiz_json, import_quiz, parse_quiz_json

__all__ = [
    "export_to_docx",
    "export_quiz_with_separate_answers",
    "export_quiz_json",
    "dump_quiz_json",
    "import_quiz",
    "parse_quiz_json",
]
