"""Tests for the command line entry point."""

import pytest

from rgpv_results.connectors.rgpv.interfaces import RecordOutcome
from rgpv_results.main import build_config, parse_args, print_single_result, print_summary


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    import os

    for name in list(os.environ):
        if name.startswith("RGPV_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr("rgpv_results.config.settings.load_dotenv", lambda: False)


class TestParseArgs:
    """Test suite for parse_args."""

    def test_defaults_to_batch(self):
        args = parse_args([])

        assert args.mode == "batch"
        assert args.force is None
        assert args.debug is None

    def test_rollno_implies_single(self):
        args = parse_args(["--rollno", "0818CS231042", "--semester", "5"])

        assert args.mode == "single"
        assert args.prefix == "0818CS23"
        assert args.start == "1042"
        assert args.semester == "5"

    def test_rollno_with_explicit_batch(self):
        args = parse_args(["--batch", "--rollno", "0818CS231042", "--end", "1050"])

        assert args.mode == "batch"
        assert args.start == "1042"

    def test_invalid_rollno(self):
        with pytest.raises(SystemExit):
            parse_args(["--rollno", "0818CS"])

    def test_single_and_batch_are_exclusive(self):
        with pytest.raises(SystemExit):
            parse_args(["--single", "--batch"])

    @pytest.mark.parametrize("option", ["--concurrency", "--ocr-concurrency", "--max-retries"])
    def test_rejects_non_positive(self, option):
        with pytest.raises(SystemExit):
            parse_args([option, "0"])

    def test_debug_flags(self):
        assert parse_args(["--debug"]).debug is True
        assert parse_args(["--no-debug"]).debug is False


class TestBuildConfig:
    """Test suite for build_config."""

    def test_single_mode_covers_one_roll_number(self):
        config = build_config(parse_args(["--rollno", "0818CS231042"]))

        assert config.roll_numbers() == ["0818CS231042"]

    def test_batch_range(self):
        config = build_config(parse_args([
            "--prefix", "0818IT23", "--start", "1001", "--end", "1003",
            "--concurrency", "4", "--force",
        ]))

        assert config.roll_numbers() == ["0818IT231001", "0818IT231002", "0818IT231003"]
        assert config.concurrency == 4
        assert config.force_reprocess is True

    def test_unset_options_fall_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("RGPV_CONCURRENCY", "20")

        config = build_config(parse_args([]))

        assert config.concurrency == 20
        assert config.force_reprocess is False


class TestOutput:
    """Test suite for the console output helpers."""

    def test_single_result(self, capsys, sample_payload):
        print_single_result(RecordOutcome("0818CS231001", "3", True, data=sample_payload))

        out = capsys.readouterr().out
        assert "Student: JOHN DOE" in out
        assert "SGPA: 7.85" in out
        assert "CS303- [P]: F" in out

    def test_failed_result(self, capsys):
        print_single_result(RecordOutcome("0818CS231001", "3", False, message="Failed after 3 attempts"))

        out = capsys.readouterr().out
        assert "Failed to get result for 0818CS231001" in out
        assert "Failed after 3 attempts" in out

    def test_summary(self, capsys):
        outcomes = [
            RecordOutcome("A", "3", True, from_cache=True),
            RecordOutcome("B", "3", True),
            RecordOutcome("C", "3", False),
        ]

        print_summary(outcomes, 6.0)

        out = capsys.readouterr().out
        assert "Successful: 2/3 (1 from cache)" in out
        assert "Failed: 1/3" in out
        assert "2.00 seconds per student" in out
