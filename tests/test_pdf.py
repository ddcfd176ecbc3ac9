"""Tests for PDF savings report generation."""

from unittest.mock import patch

import pytest

from mubu.dashboard import SavingsSummary
from mubu.models import make_record


def _records():
    return [
        make_record(
            "타이거밤 레드 연고", 1200.0, "THB", 45_000, 52_000,
            comparison_source="네이버스토어",
        ),
        make_record("코끼리 바지", 250.0, "THB", 9_375, None, comparison_source="찾을 수 없음"),
    ]


def _require_font():
    pytest.importorskip("reportlab")
    from mubu.pdf import _find_korean_font

    try:
        _find_korean_font()
    except FileNotFoundError:
        pytest.skip("No Korean font available")


class TestReportGeneration:
    def test_generate_report_creates_file(self, tmp_path):
        """generate_report writes a PDF (requires reportlab + font)."""
        _require_font()
        from mubu.pdf import generate_report

        records = _records()
        output = tmp_path / "report.pdf"
        result = generate_report(SavingsSummary.from_records(records), records, output)
        assert result == output
        assert output.read_bytes()[:4] == b"%PDF"

    def test_generate_report_creates_parent_dirs(self, tmp_path):
        _require_font()
        from mubu.pdf import generate_report

        output = tmp_path / "subdir" / "nested" / "report.pdf"
        generate_report(SavingsSummary.from_records([]), [], output)
        assert output.exists()


class TestFontDiscovery:
    def test_find_korean_font_not_found(self):
        """_find_korean_font raises when no font exists."""
        from mubu.pdf import _find_korean_font

        with patch("mubu.pdf._FONT_SEARCH_PATHS", ["/nonexistent/font.ttf"]):
            with pytest.raises(FileNotFoundError, match="한글 폰트"):
                _find_korean_font()

    def test_find_korean_font_first_existing(self, tmp_path):
        from mubu.pdf import _find_korean_font

        font = tmp_path / "NanumGothic.ttf"
        font.write_bytes(b"")
        with patch("mubu.pdf._FONT_SEARCH_PATHS", ["/nonexistent/font.ttf", str(font)]):
            assert _find_korean_font() == str(font)
