"""Utilities for importing questions from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    ...                (two to six options, A-F)
    CORRECT: A-F
    EXPLANATION: Why the correct option is right (may continue on more lines)
    SUBJECT: Subject name
    DIFFICULTY: easy|medium|hard   (optional, defaults to easy)
    SUB IF <letter> [ORDER n]: Follow-up question shown when <letter> is chosen
    A: ...
    B: ...
    CORRECT: ...
    EXPLANATION: ...

Every line after a ``SUB IF`` marker belongs to that sub-question until the
next ``SUB IF`` marker or the end of the block.

An indented line always continues the text, option or explanation above it and
is never read as a marker. Exports write such lines as ``  | text``, and a
bare ``  |`` stands for an empty line inside the text, so paragraph breaks and
lines such as ``A: ...`` inside an explanation survive a round trip.

Example:

    Q: What is $2 + 2$?
    A: 3
    B: 4
    C: 22
    CORRECT: B
    EXPLANATION: Two plus two is four.
    SUBJECT: Mathematics
    SUB IF C ORDER 1: Is "22" the sum or the concatenation of 2 and 2?
    A: Sum
    B: Concatenation
    CORRECT: B
    EXPLANATION: Writing the digits side by side gives 22.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import re

from prep_app.core.models import Difficulty, Question, SubQuestion
from prep_app.core.services.question_bank import QuestionValidationError, prepare_question


class QuizImportError(Exception):
    """Raised when a question file cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported questions and where they came from."""

    source_path: Path | None
    questions: list[Question]


OPTION_LETTERS = ("A", "B", "C", "D", "E", "F")
CONTINUATION_PREFIX = "  | "

_SUB_MARKER = re.compile(r"^SUB\s+IF\s+([A-F])(?:\s+ORDER\s+(-?\d+))?\s*:(.*)$", re.IGNORECASE)


@dataclass(slots=True)
class _Draft:
    text_lines: list[str] = field(default_factory=list)
    options: dict[str, str] = field(default_factory=dict)
    correct_letter: str | None = None
    explanation_lines: list[str] = field(default_factory=list)
    subject: str = ""
    difficulty: str = Difficulty.EASY.value
    trigger_letter: str | None = None
    order: int = 0


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_quiz_text(text)
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")
    return ImportedQuiz(source_path=file_path, questions=questions)


def parse_quiz_text(text: str) -> list[Question]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    questions: list[Question] = []
    for number, block in enumerate(blocks, start=1):
        if not block:
            continue
        try:
            questions.append(_parse_block(block))
        except QuestionValidationError as exc:
            raise QuizImportError(f"Question {number}: {exc}") from exc
        except QuizImportError as exc:
            raise QuizImportError(f"Question {number}: {exc}") from exc
    return questions


def _parse_block(block: str) -> Question:
    base = _Draft()
    subs: list[_Draft] = []
    target = base
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if raw_line[0].isspace():
            _append_line(target, current_section, _continuation_text(raw_line))
            continue

        upper = line.upper()
        sub_match = _SUB_MARKER.match(line)
        if sub_match:
            target = _Draft(
                text_lines=[sub_match.group(3).strip()],
                trigger_letter=sub_match.group(1).upper(),
                order=int(sub_match.group(2) or 0),
            )
            subs.append(target)
            current_section = "Q"
            continue

        if upper.startswith("Q:"):
            if target is not base:
                raise QuizImportError("Q: must come before any SUB IF marker.")
            base.text_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            target.correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("EXPLANATION:"):
            target.explanation_lines = [line.split(":", 1)[1].strip()]
            current_section = "EXPLANATION"
            continue

        if upper.startswith("SUBJECT:"):
            target.subject = line.split(":", 1)[1].strip()
            current_section = None
            continue

        if upper.startswith("DIFFICULTY:"):
            target.difficulty = line.split(":", 1)[1].strip().lower()
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            target.options[letter] = line[2:].strip()
            current_section = letter
            continue

        _append_line(target, current_section, line)

    if not base.text_lines:
        raise QuizImportError("Question text missing (Q: ...)")

    options = _collect_options(base)
    question = Question(
        id="",
        text="\n".join(base.text_lines).strip(),
        options=options,
        correct_option_index=_letter_to_index(base.correct_letter, len(options)),
        explanation="\n".join(base.explanation_lines).strip(),
        subject=base.subject,
        difficulty=base.difficulty,
        sub_questions=tuple(_build_sub_question(sub, base.subject) for sub in subs),
    )
    return prepare_question(question)


def _build_sub_question(draft: _Draft, subject: str) -> SubQuestion:
    options = _collect_options(draft)
    return SubQuestion(
        id="",
        text="\n".join(draft.text_lines).strip(),
        options=options,
        correct_option_index=_letter_to_index(draft.correct_letter, len(options)),
        trigger_option_index=OPTION_LETTERS.index(draft.trigger_letter),
        order=draft.order,
        explanation="\n".join(draft.explanation_lines).strip(),
        subject=draft.subject or subject,
        difficulty=draft.difficulty,
    )


def _collect_options(draft: _Draft) -> tuple[str, ...]:
    letters = OPTION_LETTERS[: len(draft.options)]
    if set(letters) != set(draft.options):
        raise QuizImportError("Options must use consecutive letters starting at A.")
    return tuple(draft.options[letter].strip() for letter in letters)


def _letter_to_index(letter: str | None, option_count: int) -> int:
    if letter is None:
        raise QuizImportError("CORRECT is required.")
    valid = OPTION_LETTERS[:option_count]
    if letter not in valid:
        raise QuizImportError(f"CORRECT must be one of {', '.join(valid)}.")
    return OPTION_LETTERS.index(letter)


def _continuation_text(raw_line: str) -> str:
    text = raw_line.strip()
    if text.startswith("|"):
        text = text[1:]
        if text.startswith(" "):
            text = text[1:]
    return text


def _append_line(draft: _Draft, section: str | None, line: str) -> None:
    if section == "Q":
        draft.text_lines.append(line)
    elif section == "EXPLANATION":
        draft.explanation_lines.append(line)
    elif section in OPTION_LETTERS:
        draft.options[section] = draft.options[section] + f"\n{line}"
    else:
        raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")
