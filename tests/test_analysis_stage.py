"""Tests for the one-shot structural analysis stage."""

import json

import pytest

from assessment_pipeline.analysis_stage import analyze
from assessment_pipeline.errors import AnalysisError
from assessment_pipeline.prompts_presets import ANALYSIS_RESPONSE_SCHEMA
from assessment_pipeline.schemas import ContentBlock
from conftest import FakeCapability, make_analysis_payload


@pytest.fixture
def blocks():
    return [
        ContentBlock(mime_type="application/pdf", data="JVBERi0xLjQ="),
        ContentBlock(mime_type="image/png", data="iVBORw0KGgo="),
    ]


class TestAnalyze:

    def test_analyze_when_valid_response_then_returns_analysis(self, blocks, analysis_payload):
        cap = FakeCapability([json.dumps(analysis_payload)])
        analysis = analyze(blocks, cap)
        assert len(analysis.parts) == 4
        assert analysis.summary == "A complete mathematics course."

    def test_analyze_when_called_then_one_request_with_blocks_then_prompt(self, blocks, analysis_payload):
        cap = FakeCapability([analysis_payload])
        analyze(blocks, cap)
        assert len(cap.calls) == 1
        contents = cap.calls[0]["contents"]
        assert contents[:2] == blocks
        assert isinstance(contents[-1], str)
        assert cap.calls[0]["schema"] is ANALYSIS_RESPONSE_SCHEMA

    def test_analyze_when_no_blocks_then_raises_without_calling(self):
        cap = FakeCapability()
        with pytest.raises(AnalysisError, match="No textbook content"):
            analyze([], cap)
        assert cap.calls == []

    def test_analyze_when_transport_fails_then_analysis_error(self, blocks):
        cap = FakeCapability([ConnectionError("network unreachable")])
        with pytest.raises(AnalysisError, match="Failed to analyze textbook: ConnectionError"):
            analyze(blocks, cap)

    def test_analyze_when_three_parts_then_malformed(self, blocks):
        cap = FakeCapability([make_analysis_payload(parts=3)])
        with pytest.raises(AnalysisError, match="malformed.*expected exactly 4 parts"):
            analyze(blocks, cap)

    def test_analyze_when_total_topics_fractional_then_accepted_and_rounded(self, blocks, analysis_payload):
        analysis_payload["totalTopics"] = 42.5
        analysis = analyze(blocks, FakeCapability([analysis_payload]))
        assert analysis.total_topics == 42

    def test_analyze_when_schema_declared_then_total_topics_is_integer(self):
        assert ANALYSIS_RESPONSE_SCHEMA["properties"]["totalTopics"]["type"] == "INTEGER"

    def test_analyze_when_unparsable_then_malformed(self, blocks):
        cap = FakeCapability(["I could not read the book."])
        with pytest.raises(AnalysisError, match="malformed"):
            analyze(blocks, cap)

    def test_analyze_when_part_ref_differs_in_case_then_resolved_to_exact_title(self, blocks, analysis_payload):
        analysis_payload["parts"][0]["chapterTitles"] = ["  chapter 1:   topic block 1 ", "Chapter 2: Topic Block 2"]
        cap = FakeCapability([analysis_payload])
        analysis = analyze(blocks, cap)
        assert analysis.parts[0].chapter_titles == ("Chapter 1: Topic Block 1", "Chapter 2: Topic Block 2")

    def test_analyze_when_part_ref_unknown_then_malformed(self, blocks, analysis_payload):
        analysis_payload["parts"][0]["chapterTitles"] = ["Appendix Z"]
        cap = FakeCapability([analysis_payload])
        with pytest.raises(AnalysisError, match="unknown chapters"):
            analyze(blocks, cap)

    def test_analyze_when_chapter_uncovered_then_accepted_with_warning(self, blocks, analysis_payload, caplog):
        analysis_payload["parts"][3]["chapterTitles"] = ["Chapter 10: Topic Block 10"]
        cap = FakeCapability([analysis_payload])
        analysis = analyze(blocks, cap)
        assert analysis.uncovered_chapters() == ["Chapter 11: Topic Block 11", "Chapter 12: Topic Block 12"]
        assert "not assigned to any part" in caplog.text
