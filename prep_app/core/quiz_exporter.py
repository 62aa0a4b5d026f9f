"""Utilities for exporting questions to the plain-text format used for imports."""

from __future__ import annotations

from pathlib import Path

from prep_app.core.models import Question, SubQuestion
from prep_app.core.quiz_importer import CONTINUATION_PREFIX, OPTION_LETTERS


def save_quiz_to_file(file_path: Path, questions: list[Question]) -> None:
    """Persist the provided questions to disk in the text import format."""

    if not questions:
        raise ValueError("Cannot export an empty quiz.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_questions(questions), encoding="utf-8")


def serialize_questions(questions: list[Question]) -> str:
    blocks = [_serialize_question(question) for question in questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    lines = _multiline("Q", question.text)
    lines.extend(_serialize_options(question.options))
    lines.append(f"CORRECT: {OPTION_LETTERS[question.correct_option_index]}")
    if question.explanation:
        lines.extend(_multiline("EXPLANATION", question.explanation))
    lines.append(f"SUBJECT: {question.subject}")
    lines.append(f"DIFFICULTY: {question.difficulty.value}")
    for sub in question.sub_questions:
        lines.extend(_serialize_sub_question(sub))
    return "\n".join(lines)


def _serialize_sub_question(sub: SubQuestion) -> list[str]:
    marker = f"SUB IF {OPTION_LETTERS[sub.trigger_option_index]} ORDER {sub.order}"
    lines = _multiline(marker, sub.text)
    lines.extend(_serialize_options(sub.options))
    lines.append(f"CORRECT: {OPTION_LETTERS[sub.correct_option_index]}")
    if sub.explanation:
        lines.extend(_multiline("EXPLANATION", sub.explanation))
    lines.append(f"DIFFICULTY: {sub.difficulty.value}")
    return lines


def _serialize_options(options: tuple[str, ...]) -> list[str]:
    lines: list[str] = []
    for letter, option_text in zip(OPTION_LETTERS, options):
        lines.extend(_multiline(letter, option_text))
    return lines


def _multiline(label: str, text: str) -> list[str]:
    """Write the first line after ``label``; later lines become ``  | `` continuations."""
    text_lines = text.splitlines() or [""]
    continuations = [f"{CONTINUATION_PREFIX}{line}".rstrip() for line in text_lines[1:]]
    return [f"{label}: {text_lines[0]}", *continuations]
