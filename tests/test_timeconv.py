"""
Tests for duration parsing and formatting.
"""

from datetime import timedelta

import pytest

from crewcli.core.services.timeconv import duration_formatter, format_hms, parse_duration

# ── Parse Tests ──────────────────────────────────────────────────────


class TestParseDuration:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("-1.5ms", timedelta(milliseconds=-1.5)),
            ("-1.5s", timedelta(seconds=-1.5)),
            ("-1.5m", timedelta(minutes=-1.5)),
            ("-1.5h", timedelta(hours=-1.5)),
            ("-1.5d", timedelta(days=-1.5)),
            ("-1.5w", timedelta(weeks=-1.5)),
            ("-1.5mo", timedelta(days=-45)),
            ("1w2d3h4m5s", timedelta(days=9, hours=3, minutes=4, seconds=5)),
            ("5s30m10s12s", timedelta(minutes=30, seconds=27)),
            ("+2h", timedelta(hours=2)),
            (".5h", timedelta(minutes=30)),
        ],
    )
    def test_parses(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["1us", "1µs", "1μs", "1000ns"])
    def test_microsecond_spellings(self, text):
        assert parse_duration(text) == timedelta(microseconds=1)

    def test_below_resolution_truncates(self):
        assert parse_duration("-1.5ns") == timedelta(0)

    def test_month_is_thirty_days(self):
        assert parse_duration("1mo") == timedelta(days=30)

    @pytest.mark.parametrize("text", ["0", "-0", "+0"])
    def test_bare_zero(self, text):
        assert parse_duration(text) == timedelta(0)

    @pytest.mark.parametrize("text", ["notaduration", "--15.12h", "", "-", "10", "5x", "1h 2m"])
    def test_rejects(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


# ── Format Tests ─────────────────────────────────────────────────────


class TestFormatDuration:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (timedelta(0), ""),
            (timedelta(seconds=15), "15s"),
            (timedelta(minutes=15), "15m"),
            (timedelta(hours=15), "15h"),
            (timedelta(seconds=64), "1m4s"),
            (timedelta(minutes=64), "1h4m"),
            (timedelta(hours=24 * 7 * 15 + 15, minutes=1, seconds=10), "2535h1m10s"),
        ],
    )
    def test_formats(self, value, expected):
        # Unit order given to the factory does not matter.
        fmt = duration_formatter(["m", "h", "s"])
        assert fmt(value) == expected

    @pytest.mark.parametrize(
        "value", [timedelta(microseconds=1), timedelta(minutes=1, microseconds=1)]
    )
    def test_remainder_below_smallest_unit(self, value):
        with pytest.raises(ValueError, match="smaller than s"):
            format_hms(value)

    def test_unknown_unit(self):
        with pytest.raises(ValueError):
            duration_formatter(["fortnight"])

    def test_parse_then_format(self):
        assert format_hms(parse_duration("1w")) == "168h"
