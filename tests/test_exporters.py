"""Tests for CSV / JSON exports."""

import json
import os

import pytest

from config import settings
from assessment_pipeline import exporters
from assessment_pipeline.constants import CSV_HEADERS
from assessment_pipeline.schemas import MCQ
from conftest import make_mcq_records


def _stamped(n_per_part=(100,), chapter="Chapter 1: Topic Block 1"):
    mcqs = []
    for k, n in enumerate(n_per_part):
        for pos, rec in enumerate(make_mcq_records([chapter], n=n, tag=f"p{k}")):
            mcqs.append(MCQ.model_validate({**rec, "id": f"part-{k}-q-{pos}", "partName": f"Part {k + 1}"}))
    return mcqs


def _one(**fields):
    rec = make_mcq_records(["Chapter 1: Topic Block 1"], n=1)[0]
    rec.update(fields)
    return MCQ.model_validate({**rec, "id": "part-0-q-0", "partName": "Part 1"})


class TestToCsv:

    def test_to_csv_when_empty_then_header_only(self):
        assert exporters.to_csv([]) == ",".join(CSV_HEADERS)

    def test_to_csv_when_questions_then_header_plus_one_row_each(self):
        text = exporters.to_csv(_stamped((100, 100)))
        lines = text.split("\n")
        assert lines[0] == "Part,Chapter,Question,Option A,Option B,Option C,Option D,Correct Answer"
        assert len(lines) == 201
        assert not text.endswith("\n")

    def test_to_csv_when_row_built_then_columns_in_order(self):
        text = exporters.to_csv([_one()])
        assert text.split("\n")[1] == "Part 1,Chapter 1: Topic Block 1,[p] What is 0 + 0?,0,1,2,3,A"

    def test_to_csv_when_field_has_quotes_then_doubled_and_wrapped(self):
        text = exporters.to_csv([_one(question='She said "x=2"')])
        assert '"She said ""x=2"""' in text

    def test_to_csv_when_field_has_comma_or_newline_then_round_trips(self):
        q = 'She said "x=2", then\nstopped'
        m = _one(question=q, options={"A": "1, 2", "B": "3", "C": "4", "D": "5"})
        rows = exporters.from_csv(exporters.to_csv([m]))
        assert len(rows) == 1
        assert rows[0]["Question"] == q
        assert rows[0]["Option A"] == "1, 2"
        assert rows[0]["Correct Answer"] == "A"

    def test_to_csv_when_part_selected_then_only_that_window(self):
        mcqs = _stamped((100, 100, 100))
        rows = exporters.from_csv(exporters.to_csv(mcqs, 1))
        assert len(rows) == 100
        assert {r["Part"] for r in rows} == {"Part 2"}

    def test_select_part_when_short_first_batch_then_positional_window(self):
        mcqs = _stamped((95, 100))
        window = exporters.select_part(mcqs, 0)
        assert len(window) == 100
        assert window[-1].part_name == "Part 2"

    def test_select_part_when_beyond_data_then_empty(self):
        assert exporters.select_part(_stamped((100,)), 3) == []


class TestJsonAndFiles:

    def test_to_json_when_questions_then_camel_case_array(self):
        data = json.loads(exporters.to_json([_one()]))
        assert data[0]["id"] == "part-0-q-0"
        assert data[0]["correctAnswer"] == "A"
        assert data[0]["chapterTitle"] == "Chapter 1: Topic Block 1"

    @pytest.mark.parametrize("kind, part, expected", [
        ("csv", None, "MathGenius_All_Parts.csv"),
        ("csv", 0, "MathGenius_Part_1.csv"),
        ("csv", 3, "MathGenius_Part_4.csv"),
        ("json", None, "MathGenius_Assessment.json"),
    ])
    def test_export_filename_when_kind_and_part_then_named(self, kind, part, expected):
        assert exporters.export_filename(kind, part) == expected

    def test_export_filename_when_prefix_configured_then_used(self, monkeypatch):
        monkeypatch.setattr(settings, "EXPORT_FILE_PREFIX", "Algebra")
        assert exporters.export_filename("csv") == "Algebra_All_Parts.csv"

    def test_write_exports_when_two_parts_then_all_parts_two_part_files_and_json(self, tmp_path):
        written = exporters.write_exports(_stamped((100, 100)), str(tmp_path))
        names = sorted(os.path.basename(p) for p in written)
        assert names == [
            "MathGenius_All_Parts.csv",
            "MathGenius_Assessment.json",
            "MathGenius_Part_1.csv",
            "MathGenius_Part_2.csv",
        ]
        assert all(os.path.exists(p) for p in written)

    def test_write_exports_when_nothing_then_no_files(self, tmp_path):
        assert exporters.write_exports([], str(tmp_path)) == []
        assert list(tmp_path.iterdir()) == []
