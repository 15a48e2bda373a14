"""Parser for the status marker and stage signals in tutor replies.

Grammar (version 1):

    reply    := ws* marker? ws* body
    marker   := "[" ("CORRECT" | "WRONG" | "IDLE") "]"      (case-insensitive)

The body is then accent-folded and lowercased, and matched against
per-locale keyword sets on word boundaries. Outcome sentiment phrases are
the exception: they are matched lowercased with their accents kept. Every result is a typed value.
"""

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Pattern, Tuple

GRAMMAR_VERSION = 1


class RobotStatus(str, Enum):
    """Verdict carried by the leading status marker."""

    CORRECT = "correct"
    WRONG = "wrong"
    IDLE = "idle"


class StageOutcome(str, Enum):
    """Qualitative outcome recorded when a stage is left."""

    GOOD = "good"
    PASS = "pass"
    NEED_EFFORT = "need_effort"


@dataclass(frozen=True)
class ParsedReply:
    status: RobotStatus
    message: str
    has_marker: bool


_MARKER_RE = re.compile(r"^\s*\[(CORRECT|WRONG|IDLE)\]\s*", re.IGNORECASE)


def fold_accents(text: str) -> str:
    """
    Lowercase and strip diacritics, including the Vietnamese "đ".

    "Bước 2: Lập kế hoạch" -> "buoc 2: lap ke hoach"
    """
    if not text:
        return ""
    text = text.replace("đ", "d").replace("Đ", "D")
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped).lower()


def parse_status_marker(reply: str) -> ParsedReply:
    """Split a reply into its verdict and the clean display message."""
    reply = reply or ""
    match = _MARKER_RE.match(reply)
    if not match:
        return ParsedReply(status=RobotStatus.IDLE, message=reply.strip(), has_marker=False)
    return ParsedReply(
        status=RobotStatus(match.group(1).lower()),
        message=reply[match.end():].strip(),
        has_marker=True,
    )


def keep_accents(text: str) -> str:
    """Lowercase in composed form, keeping diacritics ("đạt" stays apart from "đặt")."""
    return unicodedata.normalize("NFC", text or "").lower()


def _phrase_pattern(phrases: Iterable[str], normalize: Callable[[str], str] = fold_accents) -> Pattern[str]:
    normalized = sorted({normalize(phrase) for phrase in phrases}, key=len, reverse=True)
    alternation = "|".join(re.escape(phrase).replace(r"\ ", r"\s+") for phrase in normalized)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)")


# Phrases are written naturally and folded at import time.
_STAGE_ENTRY_PHRASES: Dict[int, Tuple[str, ...]] = {
    2: ("bước 2", "lập kế hoạch", "step 2", "make a plan", "devise a plan"),
    3: ("bước 3", "thực hiện", "step 3", "carry out the plan", "carry out"),
    4: ("bước 4", "kiểm tra", "step 4", "look back", "verify"),
}
_COMPLETION_PHRASES = (
    "hoàn thành",
    "hoàn tất",
    "completed",
    "you have finished",
    "problem solved",
)
_FINAL_ANSWER_PHRASES = (
    "đáp số",
    "đáp án là",
    "kết quả là",
    "hoàn thành",
    "final answer",
    "the answer is",
    "result is",
    "done",
)
_STAGE_MARKER_RE = re.compile(r"(?<!\w)(?:buoc|step)\s*([1-4])(?!\d)")

# Checked in order; "chưa tốt" must win over "tốt". Matched with accents kept,
# since folding merges "đạt" (pass) with "đặt" (set up) and "đất" (land).
_OUTCOME_PHRASES: Tuple[Tuple[StageOutcome, Tuple[str, ...]], ...] = (
    (StageOutcome.NEED_EFFORT, ("cần cố gắng", "chưa tốt", "needs more effort", "not yet")),
    (StageOutcome.PASS, ("khá tốt", "đạt", "good enough", "acceptable")),
    (StageOutcome.GOOD, ("rất tốt", "xuất sắc", "tốt", "excellent", "great job", "well done")),
)

_STAGE_ENTRY_PATTERNS = {stage: _phrase_pattern(p) for stage, p in _STAGE_ENTRY_PHRASES.items()}
_COMPLETION_PATTERN = _phrase_pattern(_COMPLETION_PHRASES)
_FINAL_ANSWER_PATTERN = _phrase_pattern(_FINAL_ANSWER_PHRASES)
_OUTCOME_PATTERNS = tuple(
    (outcome, _phrase_pattern(p, normalize=keep_accents)) for outcome, p in _OUTCOME_PHRASES
)


def mentions_stage(text: str, stage: int) -> bool:
    """True if the text names the entry of the given stage (2, 3 or 4)."""
    pattern = _STAGE_ENTRY_PATTERNS.get(stage)
    return bool(pattern and pattern.search(fold_accents(text)))


def mentions_completion(text: str) -> bool:
    return bool(_COMPLETION_PATTERN.search(fold_accents(text)))


def mentions_final_answer(*texts: str) -> bool:
    """True if any of the texts contains a final-answer phrase."""
    return any(_FINAL_ANSWER_PATTERN.search(fold_accents(text or "")) for text in texts)


def extract_outcome(text: str) -> StageOutcome:
    """Qualitative outcome from sentiment keywords; defaults to pass."""
    lowered = keep_accents(text)
    for outcome, pattern in _OUTCOME_PATTERNS:
        if pattern.search(lowered):
            return outcome
    return StageOutcome.PASS


def highest_stage_marker(text: str) -> Optional[int]:
    """Highest explicit "bước N" / "step N" marker in the text, if any."""
    stages = [int(match.group(1)) for match in _STAGE_MARKER_RE.finditer(fold_accents(text))]
    return max(stages) if stages else None


def replay_stage(model_texts: Iterable[str], first_stage: int = 1, last_stage: int = 4) -> int:
    """
    Rebuild the stage reached by replaying stored tutor messages in order.

    An explicit "bước N" / "step N" marker moves straight to that stage; a
    message naming the entry of the next stage advances by exactly one. The
    stage never moves backwards.
    """
    stage = first_stage
    for text in model_texts:
        marker = highest_stage_marker(text)
        if marker is not None and marker > stage:
            stage = marker
        elif stage < last_stage and mentions_stage(text, stage + 1):
            stage += 1
    return min(stage, last_stage)
