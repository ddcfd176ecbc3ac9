"""PDF savings report using ReportLab."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from .dashboard import SavingsSummary
from .exchange import currency_symbol
from .models import PriceComparisonRecord

# Font search paths by platform
_FONT_SEARCH_PATHS = [
    # Noto Sans CJK (Debian/Ubuntu)
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/opentype/noto/NotoSansCJKkr-Regular.otf",
    # Noto Sans CJK (Fedora/RHEL)
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/google-noto-cjk/NotoSansCJK-Regular.ttc",
    # Noto Sans KR (standalone)
    "/usr/share/fonts/truetype/noto/NotoSansKR-Regular.ttf",
    "/usr/share/fonts/noto/NotoSansKR-Regular.ttf",
    # Nanum (Debian/Ubuntu fonts-nanum)
    "/usr/share/fonts/truetype/nanum/NanumGothic.ttf",
    # macOS
    "/System/Library/Fonts/AppleSDGothicNeo.ttc",
    "/Library/Fonts/Arial Unicode.ttf",
]


def _find_korean_font() -> str:
    """Find a Korean-capable font on the system."""
    for path in _FONT_SEARCH_PATHS:
        if Path(path).exists():
            return path
    raise FileNotFoundError(
        "한글 폰트를 찾을 수 없습니다. 다음 중 하나를 설치하세요:\n"
        "  Ubuntu/Debian: sudo apt install fonts-noto-cjk\n"
        "  Fedora/RHEL:   sudo dnf install google-noto-sans-cjk-ttc-fonts\n"
        "  macOS:         Apple SD Gothic Neo 가 기본 탑재되어 있습니다"
    )


def _register_korean_font() -> str:
    """Register a Korean font with ReportLab and return the font name."""
    from reportlab.pdfbase import pdfmetrics
    from reportlab.pdfbase.ttfonts import TTFont

    font_path = _find_korean_font()
    font_name = "KoreanFont"
    pdfmetrics.registerFont(TTFont(font_name, font_path))
    return font_name


def _won(value: int | None) -> str:
    return "-" if value is None else f"₩{value:,}"


def generate_report(
    summary: SavingsSummary,
    records: Sequence[PriceComparisonRecord],
    output_path: str | Path,
) -> Path:
    """Generate a savings report PDF.

    Args:
        summary: Aggregates shown at the top of the report.
        records: Comparisons listed in the history table.
        output_path: Where to save the PDF file.

    Returns:
        Path to the generated PDF file.

    Raises:
        ImportError: If reportlab is not installed.
        FileNotFoundError: If no Korean font is found.
    """
    try:
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A4
        from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
        from reportlab.lib.units import mm
        from reportlab.platypus import (
            Paragraph,
            SimpleDocTemplate,
            Spacer,
            Table,
            TableStyle,
        )
    except ImportError:
        raise ImportError(
            "reportlab 이 필요합니다: pip install 'mubu[pdf]'"
        )

    font_name = _register_korean_font()
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "Title_KR",
        parent=styles["Title"],
        fontName=font_name,
        fontSize=18,
        leading=24,
    )
    subtitle_style = ParagraphStyle(
        "Subtitle_KR",
        parent=styles["Normal"],
        fontName=font_name,
        fontSize=12,
        leading=16,
        textColor=colors.grey,
    )
    heading_style = ParagraphStyle(
        "Heading_KR",
        parent=styles["Heading2"],
        fontName=font_name,
        fontSize=14,
        leading=20,
        spaceAfter=4 * mm,
    )
    body_style = ParagraphStyle(
        "Body_KR",
        parent=styles["Normal"],
        fontName=font_name,
        fontSize=10,
        leading=14,
    )

    elements: list = []

    elements.append(Paragraph("무부 절약 리포트", title_style))
    elements.append(Paragraph("해외에서 찍고, 한국 가격과 비교하기", subtitle_style))
    elements.append(Spacer(1, 6 * mm))

    elements.append(Paragraph("요약", heading_style))
    elements.append(Paragraph(f"총 절약 금액: {_won(summary.total_savings)}", body_style))
    elements.append(
        Paragraph(
            f"비교 횟수: {summary.comparison_count}회 / 절약 {summary.saving_count}회",
            body_style,
        )
    )
    elements.append(Paragraph(f"평균 절약: {_won(summary.average_savings)}", body_style))
    if summary.best_deal is not None:
        elements.append(
            Paragraph(
                f"최고의 딜: {summary.best_deal.product_name} "
                f"({_won(summary.best_deal.savings_amount)})",
                body_style,
            )
        )
    elements.append(
        Paragraph(
            f"항공권 목표 {_won(summary.goal)} 중 {summary.progress:.0%} 달성",
            body_style,
        )
    )
    elements.append(Spacer(1, 6 * mm))

    if records:
        elements.append(Paragraph("비교 기록", heading_style))
        table_data = [["상품", "현지 가격", "원화 환산", "한국 최저가", "절약", "판매처"]]
        for r in records:
            table_data.append([
                r.product_name,
                f"{currency_symbol(r.local_currency)}{r.local_price:,.0f}",
                _won(r.converted_local_price),
                _won(r.korean_price),
                _won(r.savings_amount) if r.has_korean_price else "-",
                r.comparison_source,
            ])

        table_style = TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#4A90D9")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, -1), font_name),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("ALIGN", (1, 1), (4, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F5F5F5")]),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ("LEFTPADDING", (0, 0), (-1, -1), 4),
            ("RIGHTPADDING", (0, 0), (-1, -1), 4),
        ])
        col_widths = [50 * mm, 25 * mm, 25 * mm, 25 * mm, 22 * mm, 33 * mm]
        t = Table(table_data, colWidths=col_widths)
        t.setStyle(table_style)
        elements.append(t)

    doc.build(elements)
    return output_path
