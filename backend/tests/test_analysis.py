"""
Tests for the lexical pre-analysis of problem statements.
"""

from polya_tutor.agents.tutor.analysis import (
    NO_CUES_NOTE,
    CueKind,
    analyze_problem_statement,
    render_analysis,
)


class TestAnalyzeProblemStatement:
    """Test cue extraction."""

    def test_new_total_in_vietnamese(self):
        cues = analyze_problem_statement("Số học sinh tăng lên thành 50 bạn.")
        assert [(cue.kind, cue.value) for cue in cues] == [(CueKind.NEW_TOTAL, "50")]

    def test_new_total_is_not_an_increment(self):
        cues = analyze_problem_statement("Giá vé tăng lên thành 120 nghìn đồng.")
        assert CueKind.INCREMENT not in {cue.kind for cue in cues}

    def test_increment_in_vietnamese(self):
        cues = analyze_problem_statement("Lớp 5A trồng được 30 cây, lớp 5B trồng tăng thêm 12 cây.")
        assert (CueKind.INCREMENT, "12") in [(cue.kind, cue.value) for cue in cues]

    def test_english_cue_phrases(self):
        assert analyze_problem_statement("The price increased to 80 dollars.")[0].kind == CueKind.NEW_TOTAL
        assert analyze_problem_statement("The price increased by 15 dollars.")[0].kind == CueKind.INCREMENT

    def test_stated_value(self):
        cues = analyze_problem_statement("Chiều dài là 2,5 m.")
        assert [(cue.kind, cue.value) for cue in cues] == [(CueKind.STATED_VALUE, "2,5")]

    def test_no_cues(self):
        assert analyze_problem_statement("Tính diện tích hình vuông cạnh 4 cm.") == []
        assert analyze_problem_statement("") == []


class TestRenderAnalysis:
    """Test the note placed in the prompt."""

    def test_renders_one_line_per_cue(self):
        note = render_analysis(analyze_problem_statement("Số sách tăng lên thành 50 quyển, giá mỗi quyển là 8 nghìn."))
        lines = note.splitlines()
        assert len(lines) == 2
        assert "50" in lines[0]
        assert "8" in lines[1]

    def test_no_cues_note(self):
        assert render_analysis([]) == NO_CUES_NOTE
