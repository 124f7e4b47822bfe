"""
Tests for snapshot parsing: locale numbers, table rows, strike discovery.
"""

import pytest

from chainvol.parsing import (
    OptionRow,
    dedupe_label,
    extract_strikes,
    parse_num,
    parse_options_table,
    strikes_from_preamble,
    strikes_from_spans,
    strikes_from_tooltips,
    strikes_from_url_param,
)
from conftest import TABLE_HEADER, snapshot_text, table_line


class TestParseNum:
    """Locale-ambiguous number parsing."""

    @pytest.mark.parametrize("token, expected", [
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("0,9000", 0.9),
        ("12.5", 12.5),
        ("42", 42.0),
        ("12,5 %", 12.5),
        ("1\u00a0234,56", 1234.56),
        ("1\u202f234,56", 1234.56),
        ("\u22120,45", -0.45),
        ("-3.25", -3.25),
    ])
    def test_values(self, token, expected):
        assert parse_num(token) == pytest.approx(expected)

    @pytest.mark.parametrize("token", [
        "\u2014", "\u2013", "", "   ", None, "abc", "%", "1.234.567", "nan", "inf",
    ])
    def test_missing(self, token):
        assert parse_num(token) is None

    def test_idempotent_on_own_output(self):
        """Parsing the canonical form of a parsed value gives the same value."""
        for token in ["1.234,56", "0,9000", "\u22120,45", "12,5 %", "1e20"]:
            value = parse_num(token)
            assert parse_num(repr(value)) == pytest.approx(value)


class TestDedupeLabel:

    def test_doubled_label_collapses(self):
        assert dedupe_label("12 févr. 202612 févr. 2026") == "12 févr. 2026"

    def test_normal_label_untouched(self):
        assert dedupe_label("12 févr. 2026") == "12 févr. 2026"

    def test_odd_and_empty(self):
        assert dedupe_label("abcab") == "abcab"
        assert dedupe_label("") == ""


class TestParseOptionsTable:

    def test_row_count(self, sample_snapshot):
        rows = parse_options_table(sample_snapshot)
        assert len(rows) == 3
        assert all(isinstance(r, OptionRow) for r in rows)

    def test_column_mapping(self, sample_snapshot):
        row = parse_options_table(sample_snapshot)[0]
        assert row.expiration == "12 févr. 2026"
        assert row.call_bid_iv == pytest.approx(20.0)
        assert row.call_ask_iv == pytest.approx(22.0)
        assert row.call_intrinsic == pytest.approx(0.5)
        assert row.call_theta == pytest.approx(-0.02)
        assert row.call_delta == pytest.approx(0.55)
        assert row.call_volume == pytest.approx(12)
        assert row.put_volume == pytest.approx(8)
        assert row.put_delta == pytest.approx(-0.45)
        assert row.put_ask_iv == pytest.approx(26.0)
        assert row.put_bid_iv == pytest.approx(24.0)

    def test_doubled_label_deduped(self, sample_snapshot):
        row = parse_options_table(sample_snapshot)[1]
        assert row.expiration == "26 mars 2026"
        assert row.call_bid_iv == pytest.approx(30.0)

    def test_dash_cells_are_missing_not_zero(self, sample_snapshot):
        """A dashed cell becomes None and the row survives."""
        row = parse_options_table(sample_snapshot)[2]
        assert row.call_bid_iv is None
        assert row.call_ask_iv is None
        assert row.put_bid_iv == pytest.approx(24.0)

    def test_short_rows_dropped(self):
        text = snapshot_text([
            table_line("12 févr. 2026"),
            "| 20,00 | 22,00 | 12 févr. 2026 |",
        ])
        assert len(parse_options_table(text)) == 1

    def test_no_header_no_rows(self):
        text = "\n".join([table_line("12 févr. 2026"), table_line("26 mars 2026")])
        assert parse_options_table(text) == []

    def test_header_must_match_case(self):
        text = snapshot_text([table_line("12 févr. 2026")]).replace("| Calls |", "| CALLS |")
        assert parse_options_table(text) == []

    def test_non_table_lines_ignored(self):
        text = snapshot_text([
            table_line("12 févr. 2026"),
            "Some text between rows",
            table_line("26 mars 2026"),
        ])
        assert [r.expiration for r in parse_options_table(text)] == ["12 févr. 2026", "26 mars 2026"]

    def test_second_header_resets(self):
        text = snapshot_text([table_line("12 févr. 2026")]) + TABLE_HEADER + "\n" + table_line("26 mars 2026")
        assert [r.expiration for r in parse_options_table(text)] == ["12 févr. 2026", "26 mars 2026"]

    def test_empty_input(self):
        assert parse_options_table("") == []
        assert parse_options_table(None) == []


class TestStrikeStrategies:

    def test_tooltips(self):
        html = '<div title="65,00"></div><div title="70,00"></div><div title="Strike"></div><i title="0"></i>'
        assert strikes_from_tooltips("", html) == [65.0, 70.0]

    def test_labeled_spans(self):
        html = '<span class="cell-strike">1 234,5</span><span class="other">99</span>'
        assert strikes_from_spans("", html) == [1234.5]

    def test_preamble_locale_decimals(self):
        md = "Strikes 65,00 et 70,50\n" + TABLE_HEADER + "\n| 80,00 |"
        assert strikes_from_preamble(md, "") == [65.0, 70.5]

    def test_preamble_bare_integers(self):
        md = "Strikes 60 65 70 65 5 123456 12.5\n" + TABLE_HEADER
        assert strikes_from_preamble(md, "") == [60.0, 65.0, 70.0]

    def test_url_param(self):
        md = TABLE_HEADER + "\n[voir](https://example.com/?view=strikes&strike=72.5)"
        assert strikes_from_url_param(md, "") == [72.5]


class TestExtractStrikes:

    def test_first_strategy_wins(self):
        """Tooltips win even when the preamble has numbers too."""
        html = '<div title="80"></div><div title="75"></div>'
        md = "Strikes 60,00 65,00\n" + TABLE_HEADER
        assert extract_strikes(md, html) == [75.0, 80.0]

    def test_sorted_and_deduplicated(self):
        html = '<div title="70"></div><div title="65"></div><div title="70"></div>'
        assert extract_strikes("", html) == [65.0, 70.0]

    def test_falls_through_to_url_param(self):
        md = TABLE_HEADER + "\nhttps://example.com/?strike=65"
        assert extract_strikes(md, None) == [65.0]

    def test_nothing_found(self):
        assert extract_strikes("", "") == []
        assert extract_strikes(TABLE_HEADER, "<p>no numbers</p>") == []
