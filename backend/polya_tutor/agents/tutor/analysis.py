"""Lexical pre-analysis of a word problem.

Ambiguous wording such as "increased to 50" (a new total) versus "increased
by 50" (an increment) is resolved before the model sees the problem, and the
findings are placed in the prompt as a short note.
"""

import re
from enum import Enum
from typing import List, NamedTuple

from .signals import fold_accents

_NUMBER = r"(\d+(?:[.,]\d+)?)"


class CueKind(str, Enum):
    NEW_TOTAL = "new_total"
    INCREMENT = "increment"
    STATED_VALUE = "stated_value"


class StatementCue(NamedTuple):
    kind: CueKind
    value: str
    phrase: str


# Patterns run on accent-folded, lowercased text.
_NEW_TOTAL_RE = re.compile(rf"(?<!\w)(?:tang len thanh|increased to|rose to|grew to)\s*{_NUMBER}")
_INCREMENT_RE = re.compile(rf"(?<!\w)(?:tang them|tang|increased by|rose by|grew by)\s*{_NUMBER}")
_STATED_RE = re.compile(rf"(?<!\w)(?:la|is)\s*{_NUMBER}")

_NOTES = {
    CueKind.NEW_TOTAL: "Đề bài cho biết tổng mới là {value} (không phải số tăng thêm).",
    CueKind.INCREMENT: "Đề bài cho biết số tăng thêm là {value} (không phải tổng mới).",
    CueKind.STATED_VALUE: "Đề bài cho biết giá trị là {value}.",
}
NO_CUES_NOTE = "Đề bài không có từ khóa đặc biệt, hãy đọc kỹ dữ kiện và yêu cầu."


def analyze_problem_statement(problem_text: str) -> List[StatementCue]:
    """
    Extract literal numbers that follow disambiguating cue phrases.

    An increment is only reported when the statement has no "increased to"
    phrase, so "tăng lên thành 50" never doubles as "tăng 50".
    """
    if not problem_text:
        return []

    folded = fold_accents(problem_text)
    cues: List[StatementCue] = []

    new_total = _NEW_TOTAL_RE.search(folded)
    if new_total:
        cues.append(StatementCue(CueKind.NEW_TOTAL, new_total.group(1), new_total.group(0)))
    else:
        increment = _INCREMENT_RE.search(folded)
        if increment:
            cues.append(StatementCue(CueKind.INCREMENT, increment.group(1), increment.group(0)))

    stated = _STATED_RE.search(folded)
    if stated:
        cues.append(StatementCue(CueKind.STATED_VALUE, stated.group(1), stated.group(0)))

    return cues


def render_analysis(cues: List[StatementCue]) -> str:
    """Render cues as prompt lines."""
    if not cues:
        return NO_CUES_NOTE
    return "\n".join(_NOTES[cue.kind].format(value=cue.value) for cue in cues)
