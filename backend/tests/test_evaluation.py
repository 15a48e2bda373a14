"""
Tests for JSON decoding of model replies and the competency evaluator.
"""

import pytest

from conftest import FakeDispatcher
from polya_tutor.agents.tutor.decoder import decode_json_object, extract_json_object
from polya_tutor.agents.tutor.evaluation import (
    CompetencyEvaluation,
    CompetencyEvaluator,
    overall_level,
)
from polya_tutor.agents.tutor.signals import StageOutcome
from polya_tutor.core.exceptions import MalformedModelOutput

TRANSCRIPT = [
    {"role": "model", "text": "Đề bài cho biết gì?"},
    {"role": "user", "text": "Cho 12 và 30, tìm tổng"},
    {"role": "model", "text": "Rất tốt!"},
]

FENCED_REPLY = """Đây là đánh giá:
```json
{
  "TC1": {"comment": "Nhận biết đầy đủ dữ kiện.", "score": 2},
  "TC2": {"comment": "Chọn đúng phép cộng.", "score": 2},
  "TC3": {"comment": "Tính đúng.", "score": 2},
  "TC4": {"comment": "Có kiểm tra lại.", "score": 1},
  "summary": "Bạn làm tốt."
}
```"""


class TestDecoder:
    """Test extraction of the first JSON object."""

    def test_extracts_object_from_fenced_reply(self):
        data = extract_json_object(FENCED_REPLY)
        assert data["TC1"]["score"] == 2

    def test_skips_braces_that_are_not_json(self):
        data = extract_json_object('Chú ý {không phải json} rồi {"score": 1}')
        assert data == {"score": 1}

    def test_no_object_raises(self):
        with pytest.raises(MalformedModelOutput) as excinfo:
            extract_json_object("không có dữ liệu")
        assert excinfo.value.raw_text == "không có dữ liệu"

    def test_empty_reply_raises(self):
        with pytest.raises(MalformedModelOutput):
            extract_json_object("")

    def test_validation_failure_raises(self):
        with pytest.raises(MalformedModelOutput):
            decode_json_object('{"TC1": "not an object"}', CompetencyEvaluation)


class TestCompetencyEvaluation:
    """Test score normalization."""

    @pytest.mark.parametrize(
        "total,level",
        [(0, StageOutcome.NEED_EFFORT), (3, StageOutcome.NEED_EFFORT), (4, StageOutcome.PASS),
         (6, StageOutcome.PASS), (7, StageOutcome.GOOD), (8, StageOutcome.GOOD)],
    )
    def test_overall_level_bands(self, total, level):
        assert overall_level(total) == level

    def test_total_is_recomputed(self):
        evaluation = decode_json_object(
            '{"TC1": {"score": 2}, "TC2": {"score": 1}, "TC3": {"score": 1}, "TC4": {"score": 0}, "total_score": 8}',
            CompetencyEvaluation,
        )
        assert evaluation.total_score == 4
        assert evaluation.level == StageOutcome.PASS

    def test_scores_are_clamped(self):
        evaluation = CompetencyEvaluation.model_validate(
            {"TC1": {"score": 5}, "TC2": {"score": -1}, "TC3": {"score": "1.6"}, "TC4": {"score": "n/a"}}
        )
        assert [criterion.score for criterion in evaluation.criteria] == [2, 0, 2, 0]
        assert evaluation.tc1.level == StageOutcome.GOOD

    def test_accepts_vietnamese_keys(self):
        evaluation = CompetencyEvaluation.model_validate(
            {"TC1": {"nhanXet": "Tốt", "diem": 2}, "tongNhanXet": "Khá"}
        )
        assert evaluation.tc1.comment == "Tốt"
        assert evaluation.tc1.score == 2
        assert evaluation.summary == "Khá"
        assert evaluation.tc2.score == 0

    def test_empty_evaluation(self):
        evaluation = CompetencyEvaluation.empty()
        assert evaluation.evaluated is False
        assert evaluation.total_score == 0
        assert evaluation.level == StageOutcome.NEED_EFFORT


@pytest.mark.asyncio
class TestCompetencyEvaluator:
    """Test the evaluator over a dispatcher."""

    async def test_evaluates_transcript(self):
        dispatcher = FakeDispatcher(FENCED_REPLY)

        evaluation = await CompetencyEvaluator(dispatcher).evaluate("Bài toán", TRANSCRIPT)

        assert evaluation.evaluated is True
        assert evaluation.total_score == 7
        assert evaluation.level == StageOutcome.GOOD
        assert evaluation.summary == "Bạn làm tốt."

        prompt = dispatcher.prompts[0]
        assert "HỌC SINH: Cho 12 và 30, tìm tổng" in prompt
        assert "AI: Rất tốt!" in prompt

    async def test_null_reply_gives_empty_evaluation(self):
        evaluation = await CompetencyEvaluator(FakeDispatcher(None)).evaluate("Bài toán", TRANSCRIPT)
        assert evaluation.evaluated is False
        assert evaluation.total_score == 0

    async def test_malformed_reply_gives_empty_evaluation(self):
        evaluation = await CompetencyEvaluator(FakeDispatcher("Xin lỗi, mình không đánh giá được.")).evaluate(
            "Bài toán", TRANSCRIPT
        )
        assert evaluation.evaluated is False
        assert evaluation == CompetencyEvaluation.empty()
