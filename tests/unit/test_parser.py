#
# tests/unit/test_parser.py
#
"""
Tests for the TAP line state machine.
"""

import io

import pytest

from tapharness.logsink import TranscriptLog
from tapharness.reporting.console import ReportConsole
from tapharness.reporting.summary import summarize
from tapharness.state import PlanState, TestStatus
from tapharness.tap.parser import MAX_TEST_NUMBER, parse_integer
from tapharness.tap.pragmas import Pragma, PragmaRegistry, PragmaState


class TestParseInteger:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("5 foo", (5, " foo")),
            ("  12\n", (12, "\n")),
            ("-3", (-3, "")),
            ("+7x", (7, "x")),
            (" - works", (None, " - works")),
            ("", (None, "")),
        ],
    )
    def test_parse_integer(self, text, expected):
        assert parse_integer(text) == expected


class TestPlans:
    """Plan line handling in each plan state."""

    def test_plan_first_any_order(self, feed):
        ts, console, _ = feed(["1..4\n", "ok 3\n", "not ok 1\n", "ok 2\n", "ok 4 # skip no net\n"])

        assert ts.plan == PlanState.PLAN_FIRST
        assert (ts.passed, ts.failed, ts.skipped) == (2, 1, 1)
        assert not ts.aborted
        assert ts.results == [TestStatus.FAIL, TestStatus.PASS, TestStatus.PASS, TestStatus.SKIP]
        assert console.getvalue() == ""

    def test_plan_first_allocates_exact_count(self, feed):
        ts, _, _ = feed(["1..5\n"])
        assert ts.count == 5
        assert ts.allocated == 5

    def test_late_plan_equal_to_seen_tests(self, feed):
        ts, _, _ = feed(["ok 1\n", "ok 2\n", "1..2\n"])
        assert ts.plan == PlanState.PLAN_FINAL
        assert ts.count == 2
        assert not ts.aborted

    def test_late_plan_larger_than_seen_tests(self, feed):
        ts, _, _ = feed(["ok 1\n", "1..3\n"])
        assert ts.plan == PlanState.PLAN_FINAL
        assert ts.count == 3
        assert ts.numbers_with(TestStatus.INVALID) == [2, 3]

    def test_late_plan_smaller_than_seen_tests(self, feed):
        ts, console, _ = feed(["ok 1\n", "ok 2\n", "ok 3\n", "1..2\n"])
        assert ts.aborted
        assert ts.reported
        assert console.getvalue() == "ABORTED (invalid test number 3)\n"

    def test_multiple_plans(self, feed):
        ts, console, _ = feed(["1..2\n", "ok 1\n", "1..2\n"])
        assert ts.aborted
        assert console.getvalue() == "ABORTED (multiple plans)\n"

    def test_plan_after_late_plan_is_multiple(self, feed):
        ts, console, _ = feed(["ok 1\n", "1..1\n", "1..1\n"])
        assert console.getvalue() == "ABORTED (multiple plans)\n"

    @pytest.mark.parametrize("line", ["1..0\n", "1..-4\n", "1..\n", f"1..{MAX_TEST_NUMBER + 1}\n"])
    def test_invalid_test_count(self, feed, line):
        ts, console, _ = feed([line])
        assert ts.aborted
        assert console.getvalue() == "ABORTED (invalid test count)\n"

    def test_skip_all_with_reason(self, feed):
        ts, console, _ = feed(["1..0 # skip no database\n", "ok 1\n"])
        assert ts.all_skipped
        assert ts.aborted
        assert not ts.reported
        assert ts.reason == "no database"
        assert ts.count == 0
        assert ts.passed == 0
        assert console.getvalue() == ""

    def test_skip_all_without_reason(self, feed):
        ts, _, _ = feed(["1..0 # SKIP\n"])
        assert ts.all_skipped
        assert ts.reason is None

    def test_skip_all_directive_is_case_insensitive(self, feed):
        ts, _, _ = feed(["1..0 #Skipped: no network\n"])
        assert ts.all_skipped
        assert ts.reason == "ped: no network"


class TestResults:
    """Result line handling."""

    def test_implicit_numbering(self, feed):
        ts, _, _ = feed(["1..3\n", "ok\n", "ok - two\n", "not ok\n"])
        assert ts.results == [TestStatus.PASS, TestStatus.PASS, TestStatus.FAIL]
        assert ts.current == 3

    def test_implicit_numbering_follows_last_explicit(self, feed):
        ts, _, _ = feed(["1..4\n", "ok 3\n", "ok\n"])
        assert ts.status_of(4) == TestStatus.PASS

    def test_duplicate_test_number(self, feed):
        ts, console, _ = feed(["1..3\n", "ok 1\n", "ok 1\n", "ok 2\n"])
        assert ts.aborted
        assert ts.passed == 1
        assert console.getvalue() == "ABORTED (duplicate test number 1)\n"

    @pytest.mark.parametrize(("line", "number"), [("ok 3\n", 3), ("ok 0\n", 0), ("not ok -1\n", -1)])
    def test_number_outside_plan(self, feed, line, number):
        ts, console, _ = feed(["1..2\n", line])
        assert ts.aborted
        assert console.getvalue() == f"ABORTED (invalid test number {number})\n"

    def test_number_beyond_late_plan(self, feed):
        ts, console, _ = feed(["ok 1\n", "1..1\n", "ok 2\n"])
        assert console.getvalue() == "ABORTED (invalid test number 2)\n"

    def test_huge_number_is_rejected_without_allocating(self, feed):
        ts, console, _ = feed([f"ok {MAX_TEST_NUMBER + 1}\n"])
        assert ts.aborted
        assert ts.allocated == 0
        assert console.getvalue() == f"ABORTED (invalid test number {MAX_TEST_NUMBER + 1})\n"

    def test_large_plan_is_accepted(self, feed):
        ts, console, _ = feed(["1..2000000\n", "ok 1\n"])
        assert not ts.aborted
        assert ts.count == 2_000_000
        assert ts.passed == 1
        assert console.getvalue() == ""

    def test_large_number_before_late_plan(self, feed):
        ts, console, _ = feed(["ok 1000001\n", "1..1000001\n"])
        assert not ts.aborted
        assert ts.plan == PlanState.PLAN_FINAL
        assert ts.count == 1_000_001
        assert ts.passed == 1
        assert console.getvalue() == ""

    def test_todo_and_skip_directives(self, feed):
        ts, _, _ = feed(
            [
                "1..4\n",
                "not ok 1 # TODO not written yet\n",
                "ok 2 # todo surprise\n",
                "not ok 3 # SKIP broken here\n",
                "ok 4 - plain # comment only\n",
            ]
        )
        assert ts.results == [TestStatus.SKIP, TestStatus.FAIL, TestStatus.SKIP, TestStatus.PASS]
        assert (ts.passed, ts.failed, ts.skipped) == (1, 1, 2)

    def test_ok_prefix_reads_as_result(self, feed):
        ts, console, _ = feed(["1..1\n", "hello world\n", "okay then\n", "ok 1\n"])
        # "okay" starts with "ok" and is read as an implicitly numbered result.
        assert ts.aborted
        assert console.getvalue() == "ABORTED (duplicate test number 1)\n"

    def test_non_tap_lines_are_ignored(self, feed):
        ts, _, _ = feed(["1..1\n", "random output\n", "  indented\n", "ok 1\n"])
        assert not ts.aborted
        assert ts.passed == 1


class TestPendingGrowth:
    """Results table growth while no plan has been seen."""

    def test_first_result_allocates_minimum(self, feed):
        ts, _, _ = feed(["ok 1\n"])
        assert ts.plan == PlanState.PLAN_PENDING
        assert ts.count == 1
        assert ts.allocated == 32

    def test_growth_doubles(self, feed):
        ts, _, _ = feed(["ok 1\n", "ok 33\n"])
        assert ts.allocated == 64
        assert ts.count == 33

    def test_growth_jumps_to_number(self, feed):
        ts, _, _ = feed(["ok 1\n", "ok 200\n"])
        assert ts.allocated == 200

    def test_missing_tests_become_failures(self, feed):
        ts, _, _ = feed(["1..3\n", "ok 1\n", "ok 2\n"])
        assert ts.convert_missing() == 1
        assert ts.failed == 1
        assert ts.status_of(3) == TestStatus.FAIL


class TestBailOut:
    def test_bail_out_with_reason(self, feed):
        ts, console, _ = feed(["1..5\n", "ok 1\n", "ok 2\n", "# Bail out! disk full\n", "ok 3\n"])
        assert ts.aborted
        assert ts.reported
        assert ts.passed == 2
        assert console.getvalue() == "ABORTED (disk full)\n"

    def test_bail_out_without_reason_is_not_reported(self, feed):
        ts, console, _ = feed(["1..2\n", "Bail out!\n"])
        assert ts.aborted
        assert not ts.reported
        assert console.getvalue() == ""

    def test_bail_out_in_truncated_line(self, feed):
        ts, console, _ = feed(["Bail out! out of memory"])
        assert ts.aborted
        assert console.getvalue() == "ABORTED (out of memory)\n"


class TestVersionAndPragmas:
    def test_old_version_is_rejected(self, feed):
        ts, console, _ = feed(["TAP version 12\n", "1..1\n"])
        assert ts.aborted
        assert console.getvalue() == "ABORTED (Invalid TAP version: 12)\n"

    def test_version_defaults_to_12(self, feed):
        ts, _, _ = feed(["1..1\n"])
        assert ts.tap_version == 12

    def test_version_only_on_first_line(self, feed):
        ts, console, _ = feed(["1..1\n", "TAP version 13\n", "ok 1\n"])
        assert ts.tap_version == 12
        assert not ts.aborted

    def test_pragma_toggles_strict(self, feed):
        ts, _, pragmas = feed(["TAP version 13\n", "pragma +strict\n", "1..1\n", "ok 1\n"])
        assert ts.tap_version == 13
        assert pragmas.strict
        assert ts.passed == 1

    def test_pragma_off_then_on(self, feed):
        pragmas = PragmaState(strict=True)
        _, _, pragmas = feed(["TAP version 13\n", "pragma -strict\n"], pragmas=pragmas)
        assert not pragmas.strict
        _, _, pragmas = feed(["TAP version 13\n", "pragma +strict\n"], pragmas=pragmas)
        assert pragmas.strict

    def test_pragma_list(self, feed):
        _, _, pragmas = feed(["TAP version 13\n", "pragma +strict, +readblock\n"])
        assert pragmas.strict
        assert pragmas.blocking_read

    def test_unknown_pragma_is_ignored(self, feed):
        ts, _, pragmas = feed(["TAP version 13\n", "pragma +frobnicate, +strict\n"])
        assert not ts.aborted
        assert pragmas.strict

    @pytest.mark.parametrize("line", ["pragma strict\n", "pragma +strict, bogus\n"])
    def test_invalid_pragma(self, feed, line):
        ts, console, _ = feed(["TAP version 13\n", line])
        assert ts.aborted
        assert console.getvalue() == "ABORTED (invalid pragma)\n"

    def test_pragma_ignored_before_version_13(self, feed):
        ts, _, pragmas = feed(["1..1\n", "pragma +strict\n", "ok 1\n"])
        assert not pragmas.strict
        assert not ts.aborted

    def test_registered_check_claims_lines(self, feed):
        registry = PragmaRegistry(
            [Pragma("swallow", check=lambda line, ts, pragmas: line.startswith("ok 2"))]
        )
        ts, _, _ = feed(["TAP version 13\n", "1..2\n", "ok 1\n", "ok 2\n"], registry=registry)
        assert ts.passed == 1
        assert ts.status_of(2) == TestStatus.INVALID


class TestOutput:
    def test_verbose_result_lines(self, feed):
        _, console, _ = feed(["1..2\n", "ok 1 - works\n", "not ok 2\n"], verbosity=1)
        assert console.getvalue() == "    1 - works: PASS\n    2 FAIL\n"

    def test_comments_echoed_at_verbosity_3(self, feed):
        _, console, _ = feed(["1..1\n", "# a comment\n"], verbosity=3)
        assert console.getvalue() == "# a comment\n"

    def test_comments_hidden_by_default(self, feed):
        _, console, _ = feed(["1..1\n", "# a comment\n"], verbosity=2)
        assert console.getvalue() == ""

    def test_progress_on_terminal(self, feed):
        stream = io.StringIO()
        feed(["1..2\n", "ok 1\n", "ok 2\n"], console=ReportConsole(stream, tty=True))
        assert stream.getvalue() == "1/2\b\b\b   \b\b\b2/2"

    def test_progress_while_plan_pending(self, feed):
        stream = io.StringIO()
        feed(["ok 1\n"], console=ReportConsole(stream, tty=True))
        assert stream.getvalue() == "1/?"

    def test_abort_erases_progress(self, feed):
        stream = io.StringIO()
        feed(["1..2\n", "ok 1\n", "ok 1\n"], console=ReportConsole(stream, tty=True))
        assert stream.getvalue() == "1/2\b\b\b   \b\b\bABORTED (duplicate test number 1)\n"

    def test_transcript_records_every_line(self, feed, tmp_path):
        target = tmp_path / "transcript.log"
        with TranscriptLog() as transcript:
            transcript.open(target)
            feed(["1..1\n", "noise\n", "ok 1\n", "truncated head"], transcript=transcript)
        assert target.read_text() == "1..1\nnoise\nok 1\ntruncated head\n"

    def test_truncated_line_is_not_parsed(self, feed):
        ts, _, _ = feed(["ok 1"])
        assert ts.tap_version == 0
        assert ts.plan == PlanState.UNSET


def test_parsing_is_repeatable(feed):
    lines = ["1..5\n", "ok 1\n", "not ok 2\n", "ok 4 # skip\n", "ok 5\n"]
    first, _, _ = feed(lines)
    second, _, _ = feed(lines)
    assert (first.passed, first.failed, first.skipped) == (second.passed, second.failed, second.skipped)
    assert summarize(first) == summarize(second) == "MISSED 3; FAILED 2"


# 🔼⚙️
