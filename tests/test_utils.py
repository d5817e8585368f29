import json

from assessment_pipeline import utils


class TestTextHelpers:

    def test_truncate_when_short_then_unchanged(self):
        assert utils.truncate("short", 10) == "short"

    def test_truncate_when_long_then_cut_at_word_boundary(self):
        assert utils.truncate("alpha beta gamma", 12) == "alpha beta…"

    def test_normalize_title_when_spacing_and_case_differ_then_equal(self):
        assert utils.normalize_title("  Chapter 1:\tLimits ") == utils.normalize_title("chapter 1: limits")


class TestRunReport:

    def test_save_run_report_when_failure_appended_then_written(self, tmp_path, monkeypatch):
        monkeypatch.setattr(utils.settings, "LOG_DIR", str(tmp_path / "logs"))
        report = utils.start_run_report()
        utils.append_failure(report, "part 2", "Failed to generate Part 2: TimeoutError")
        path = utils.save_run_report(report, str(tmp_path))
        with open(path, encoding="utf-8") as f:
            saved = json.load(f)
        assert saved["failures"] == [{"stage": "part 2", "reason": "Failed to generate Part 2: TimeoutError"}]
        assert saved["totals"]["questions"] == 0
