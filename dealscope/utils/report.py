"""
PDF rendering of deal analysis reports with reportlab.
"""

import io
from typing import Any, Dict, List, Tuple

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.utils import simpleSplit

FONT = "Times-Roman"
TITLE_SIZE = 24
HEADING_SIZE = 16
BODY_SIZE = 12

LEFT_MARGIN = 50
BODY_MARGIN = 70
INDENT_STEP = 15
RIGHT_MARGIN = 50

TOP_OFFSET = 50
LINE_STEP = 20
HEADING_STEP = 30
SECTION_GAP = 20

# A heading never starts below this y; body lines never below LINE_FLOOR.
HEADING_FLOOR = 100
LINE_FLOOR = 50


def section_title(section_type: str) -> str:
    """financial_analysis -> Financial Analysis"""
    return ' '.join(word[:1].upper() + word[1:] for word in section_type.split('_'))


def format_value(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, float):
        return f"{value:,.2f}".rstrip('0').rstrip('.')
    return str(value)


def flatten_data(data: Any, depth: int = 0) -> List[Tuple[int, str]]:
    """
    Flatten section data into (depth, text) lines.

    Nested objects get a `key:` line followed by their fields one level
    deeper; lists are expanded item by item.
    """
    lines = []

    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, (dict, list)):
                if not value:
                    lines.append((depth, f"{key}: none"))
                    continue
                lines.append((depth, f"{key}:"))
                lines.extend(flatten_data(value, depth + 1))
            else:
                lines.append((depth, f"{key}: {format_value(value)}"))
    elif isinstance(data, list):
        for index, item in enumerate(data, start=1):
            if isinstance(item, (dict, list)):
                lines.append((depth, f"#{index}"))
                lines.extend(flatten_data(item, depth + 1))
            else:
                lines.append((depth, f"- {format_value(item)}"))
    elif data is not None:
        lines.append((depth, format_value(data)))

    return lines


class ReportWriter:
    """Canvas wrapper tracking the cursor and starting pages as needed."""

    def __init__(self, buffer: io.BytesIO):
        self.canvas = canvas.Canvas(buffer, pagesize=LETTER)
        self.width, self.height = LETTER
        self.y = self.height - TOP_OFFSET
        self.pages = 1

    def new_page(self):
        self.canvas.showPage()
        self.pages += 1
        self.y = self.height - TOP_OFFSET

    def title(self, text: str):
        self.canvas.setFont(FONT, TITLE_SIZE)
        self.canvas.drawString(LEFT_MARGIN, self.y, text)
        self.y -= TOP_OFFSET

    def text(self, text: str, step: int = LINE_STEP):
        self.canvas.setFont(FONT, BODY_SIZE)
        self.canvas.drawString(LEFT_MARGIN, self.y, text)
        self.y -= step

    def heading(self, text: str):
        if self.y < HEADING_FLOOR:
            self.new_page()
        self.canvas.setFont(FONT, HEADING_SIZE)
        self.canvas.drawString(LEFT_MARGIN, self.y, text)
        self.y -= HEADING_STEP

    def body_line(self, text: str, depth: int = 0):
        x = BODY_MARGIN + depth * INDENT_STEP
        available = self.width - RIGHT_MARGIN - x
        for chunk in simpleSplit(text, FONT, BODY_SIZE, available) or ['']:
            if self.y < LINE_FLOOR:
                self.new_page()
            self.canvas.setFont(FONT, BODY_SIZE)
            self.canvas.drawString(x, self.y, chunk)
            self.y -= LINE_STEP

    def save(self):
        self.canvas.save()


def render_deal_report(deal: Dict[str, Any], sections: List[Dict[str, Any]]) -> bytes:
    """
    Render a deal and its workflow sections (already in display order) as a
    US-Letter PDF and return the bytes.
    """
    buffer = io.BytesIO()
    writer = ReportWriter(buffer)

    writer.title("Deal Analysis Report")
    writer.text(f"Property Address: {deal.get('address', '')}", step=HEADING_STEP)
    writer.text(f"Analysis Progress: {deal.get('progress', 0)}%", step=HEADING_STEP)
    if deal.get('analyst_score') is not None:
        writer.text(f"DealScore: {deal['analyst_score']}/100", step=HEADING_STEP)
    writer.y -= SECTION_GAP

    for section in sections:
        writer.heading(section_title(section['section_type']))
        for depth, line in flatten_data(section.get('data') or {}):
            writer.body_line(line, depth)
        writer.y -= SECTION_GAP

    writer.save()
    return buffer.getvalue()
