"""JSON import/export of quizzes in the shareable `{title, questions}` shape."""

import json
import logging
from typing import Any

from quizstreak.models.quiz import Quiz
from quizstreak.models.results import OperationResult
from quizstreak.store.store import QuizStore

logger = logging.getLogger(__name__)


def parse_quiz_json(text: str) -> OperationResult:
    """
    Parse pasted or loaded JSON into a quiz payload.

    Returns:
        OperationResult whose value is the decoded payload
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return OperationResult.invalid(f"Invalid JSON: {e.msg}")
    return check_quiz_payload(data)


def check_quiz_payload(data: Any) -> OperationResult:
    """Accept any mapping with a non-empty title and a list of questions."""
    if not isinstance(data, dict):
        return OperationResult.invalid("Quiz data must be a JSON object")
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        return OperationResult.invalid("Quiz data must contain a non-empty 'title'")
    if not isinstance(data.get("questions"), list):
        return OperationResult.invalid("'questions' must be a list")
    return OperationResult.success(data)


def _answer_from_payload(item: Any) -> dict[str, Any] | None:
    if isinstance(item, str):
        return {"text": item, "is_correct": False}
    if not isinstance(item, dict):
        return None
    return {
        "id": item.get("id"),
        "text": str(item.get("text", "")),
        "is_correct": bool(item.get("isCorrect", item.get("is_correct", False))),
    }


def _question_from_payload(index: int, item: Any) -> dict[str, Any] | None:
    if not isinstance(item, dict):
        logger.warning("Skipping question %d: not an object", index)
        return None

    answers = [
        answer
        for answer in (_answer_from_payload(a) for a in item.get("answers") or [])
        if answer is not None
    ]
    images = item.get("images")
    return {
        "id": item.get("id"),
        "text": str(item.get("text", item.get("question", ""))),
        "order_index": index,
        "answers": answers,
        "images": [str(i) for i in images] if isinstance(images, list) and images else None,
    }


def import_quiz(store: QuizStore, data: Any) -> OperationResult:
    """
    Create a quiz from an imported payload through the normal add path.

    Question content is taken as-is; questions without a correct answer are
    kept but will not be played.

    Returns:
        OperationResult whose value is the new Quiz
    """
    checked = check_quiz_payload(data)
    if not checked.ok:
        return checked

    questions = [
        question
        for question in (
            _question_from_payload(i, item) for i, item in enumerate(data["questions"])
        )
        if question is not None
    ]
    description = data.get("description")
    result = store.add_quiz(
        data["title"],
        description if isinstance(description, str) else "",
        questions,
    )
    if result.ok:
        logger.info("Imported quiz '%s' with %d questions", result.value.title, len(questions))
    return result


def export_quiz_json(quiz: Quiz) -> dict[str, Any]:
    """Shareable representation of a quiz, accepted back by `import_quiz`."""
    questions = []
    for question in quiz.sorted_questions:
        exported = {
            "text": question.text,
            "answers": [
                {"text": answer.text, "isCorrect": answer.is_correct}
                for answer in question.answers
            ],
        }
        if question.images:
            exported["images"] = list(question.images)
        questions.append(exported)

    return {
        "title": quiz.title,
        "description": quiz.description,
        "questions": questions,
    }


def dump_quiz_json(quiz: Quiz, indent: int | None = 2) -> str:
    return json.dumps(export_quiz_json(quiz), indent=indent, ensure_ascii=False)
