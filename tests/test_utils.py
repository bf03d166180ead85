"""Tests for shared helpers."""

from heardprint import utils
from heardprint.utils import chunks, decade_label, dedupe, round_half_up


def test_round_half_up():
    assert round_half_up(62.5) == 63
    assert round_half_up(0.5) == 1
    assert round_half_up(49.4) == 49


def test_dedupe_keeps_first_seen_order():
    assert dedupe(["b", "a", "b", None, "c", "a"]) == ["b", "a", "c"]


def test_chunks():
    assert list(chunks(list(range(5)), 2)) == [[0, 1], [2, 3], [4]]


def test_decade_label():
    assert decade_label(1994) == "1990s"
    assert decade_label(2000) == "2000s"


def test_log_function_hook():
    lines = []
    utils.set_log_function(lines.append)
    try:
        utils.log("hello")
        utils.set_verbose(False)
        utils.verbose_log("hidden")
        utils.set_verbose(True)
        utils.verbose_log("shown")
    finally:
        utils.set_log_function(None)
        utils.set_verbose(False)
    assert lines == ["hello", "🔍 [VERBOSE] shown"]


def test_timed_step_logs_start_and_end():
    lines = []
    utils.set_log_function(lines.append)
    try:
        with utils.timed_step("Step"):
            pass
    finally:
        utils.set_log_function(None)
    assert lines[0] == "⏱️  [START] Step"
    assert lines[1].startswith("⏱️  [END] Step")
