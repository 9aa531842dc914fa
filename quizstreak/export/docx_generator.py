"""Word (DOCX) export of a quiz, with the answers marked or in a separate key."""

import string
from datetime import datetime
from pathlib import Path

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Inches, Pt, RGBColor

from quizstreak.models.quiz import Question, Quiz

GREY = RGBColor(128, 128, 128)
GREEN = RGBColor(0, 128, 0)


def export_path(
    output_dir: str, base_name: str, suffix: str = "", stamp: str | None = None
) -> Path:
    """
    Build `<output_dir>/<base>[_suffix]_<stamp>.docx`, creating the directory.

    Only the last component of `base_name` is kept, so a caller passing a
    path still writes inside `output_dir`.
    """
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = stamp or datetime.now().strftime("%Y%m%d_%H%M%S")
    parts = [Path(base_name).name.removesuffix(".docx") or "quiz", suffix, stamp]
    return directory / ("_".join(p for p in parts if p) + ".docx")


def answer_label(index: int) -> str:
    """Letter label for the answer at `index` (A, B, C, ...)."""
    return string.ascii_uppercase[index % 26]


def new_document(heading: str) -> Document:
    """Blank document in 11pt Calibri with 1 inch margins and a centred title."""
    doc = Document()
    doc.styles["Normal"].font.name = "Calibri"
    doc.styles["Normal"].font.size = Pt(11)
    for section in doc.sections:
        section.top_margin = section.bottom_margin = Inches(1)
        section.left_margin = section.right_margin = Inches(1)

    doc.add_heading(heading, level=0).alignment = WD_ALIGN_PARAGRAPH.CENTER
    return doc


def export_to_docx(
    quiz: Quiz,
    output_path: str,
    include_answers: bool = False,
    use_output_dir: bool = True,
    output_dir: str = "output",
) -> str:
    """
    Export quiz to a formatted DOCX file.

    Args:
        quiz: Quiz to export
        output_path: Target file, or just its base name when `use_output_dir` is set
        include_answers: Mark the correct answers and append an answer key
        use_output_dir: Write a timestamped file into `output_dir` instead
        output_dir: Directory for timestamped files

    Returns:
        Path to the created DOCX file
    """
    if use_output_dir:
        output_path = str(export_path(output_dir, output_path))

    doc = new_document(quiz.title)
    if quiz.description:
        description = doc.add_paragraph(quiz.description)
        description.alignment = WD_ALIGN_PARAGRAPH.CENTER
        description.runs[0].italic = True

    summary = doc.add_paragraph()
    summary.alignment = WD_ALIGN_PARAGRAPH.CENTER
    summary.add_run(f"Questions: {len(quiz.questions)}").bold = True
    updated = summary.add_run(f"   Last updated: {quiz.updated_at.strftime('%Y-%m-%d %H:%M')}")
    updated.font.size = Pt(9)
    updated.font.color.rgb = GREY

    doc.add_page_break()

    for number, question in enumerate(quiz.sorted_questions, 1):
        add_question_to_document(doc, number, question, include_answers)

    if include_answers:
        doc.add_page_break()
        add_answer_key(doc, quiz)

    doc.save(output_path)
    return output_path


def add_question_to_document(
    doc: Document, number: int, question: Question, include_answers: bool = False
) -> None:
    """
    Add one question and its answers to the document.

    Args:
        doc: Document to add to
        number: 1-based question number
        question: Question to render
        include_answers: If True, highlights the correct answers
    """
    q_para = doc.add_paragraph()
    q_run = q_para.add_run(f"Q{number}. ")
    q_run.bold = True
    q_run.font.size = Pt(12)
    q_para.add_run(question.text)

    if len(question.correct_answer_ids) > 1:
        hint = doc.add_paragraph().add_run("  (select all that apply)")
        hint.italic = True
        hint.font.size = Pt(9)

    if question.images:
        images_para = doc.add_paragraph()
        images_run = images_para.add_run(f"  [{len(question.images)} image(s) in the app]")
        images_run.font.size = Pt(9)
        images_run.font.color.rgb = GREY

    for index, answer in enumerate(question.answers):
        opt_para = doc.add_paragraph(f"   {answer_label(index)}. {answer.text}")
        opt_para.paragraph_format.left_indent = Inches(0.5)

        if include_answers and answer.is_correct:
            opt_para.runs[0].bold = True
            opt_para.runs[0].font.color.rgb = GREEN
            opt_para.add_run(" ✓").font.color.rgb = GREEN

    doc.add_paragraph()


def correct_labels(question: Question) -> str:
    """Comma-separated labels and texts of the correct answers."""
    return ", ".join(
        f"{answer_label(i)} - {answer.text}"
        for i, answer in enumerate(question.answers)
        if answer.is_correct
    )


def add_answer_key(doc: Document, quiz: Quiz) -> None:
    """Append the "Answer Key" heading and a Q# / correct answer(s) table."""
    header = doc.add_heading("Answer Key", level=1)
    header.alignment = WD_ALIGN_PARAGRAPH.CENTER
    header.runs[0].font.color.rgb = RGBColor(0, 51, 102)

    table = doc.add_table(rows=1, cols=2)
    table.style = "Light Grid Accent 1"
    for cell, text in zip(table.rows[0].cells, ("Q#", "Correct answer(s)")):
        cell.paragraphs[0].add_run(text).bold = True

    for number, question in enumerate(quiz.sorted_questions, 1):
        row = table.add_row().cells
        row[0].text = str(number)
        row[1].text = correct_labels(question) or "N/A"


def export_quiz_with_separate_answers(
    quiz: Quiz, base_path: str, output_dir: str = "output"
) -> tuple[str, str]:
    """
    Export the questions and the answer key as two timestamped files.

    Returns:
        Tuple of (questions_path, answers_path)
    """
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    questions_path = str(export_path(output_dir, base_path, "questions", stamp))
    answers_path = str(export_path(output_dir, base_path, "answers", stamp))

    export_to_docx(quiz, questions_path, include_answers=False, use_output_dir=False)

    key = new_document(f"{quiz.title} - Answer Key")
    add_answer_key(key, quiz)
    key.save(answers_path)

    return questions_path, answers_path
