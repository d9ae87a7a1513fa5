"""DashboardPDFGenerator: the global dashboard as a printable document."""
import io
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (SimpleDocTemplate, Paragraph, Spacer, Image, HRFlowable,
                                KeepTogether, Table, TableStyle)

# ── Colour Palette ────────────────────────────────────────────────────────────
BRAND = colors.HexColor("#3b82f6")
DARK  = colors.HexColor("#111827")
MUTED = colors.HexColor("#6B7280")
EDGE  = colors.HexColor("#E5E7EB")
CARD_BG = colors.HexColor("#F8FAFC")

PAGE_W, PAGE_H = landscape(A4)
MARGIN = 0.6 * inch
CW = PAGE_W - 2 * MARGIN
_IMG_MAX_H = 3.6 * inch


class DashboardTile(NamedTuple):
    title: str
    project_name: str
    png: Optional[bytes] = None
    narrative: Optional[str] = None


def _now_utc():
    return datetime.now(timezone.utc).strftime("%B %d, %Y at %H:%M UTC")


_S = None

def _s():
    global _S
    if _S:
        return _S
    def ps(n, **kw):
        return ParagraphStyle(n, **kw)
    _S = {
        'title': ps('title', fontName='Helvetica-Bold', fontSize=20, textColor=DARK, spaceAfter=4, leading=24),
        'meta':  ps('meta',  fontName='Helvetica',      fontSize=9,  textColor=MUTED, leading=12),
        'tile':  ps('tile',  fontName='Helvetica-Bold', fontSize=12, textColor=DARK, leading=15),
        'proj':  ps('proj',  fontName='Helvetica',      fontSize=8,  textColor=MUTED, leading=10),
        'b':     ps('b',     fontName='Helvetica',      fontSize=9,  textColor=colors.HexColor("#374151"), leading=13),
        'empty': ps('empty', fontName='Helvetica-Oblique', fontSize=9, textColor=MUTED, leading=12),
    }
    return _S


def _on_page(c, d):
    c.saveState()
    c.setFillColor(BRAND)
    c.rect(0, PAGE_H - 4, PAGE_W, 4, fill=1, stroke=0)
    c.setFont("Helvetica", 7)
    c.setFillColor(MUTED)
    c.drawString(MARGIN, 20, f"SheetSense dashboard · generated {d.generated_at}")
    c.drawRightString(PAGE_W - MARGIN, 20, f"Page {d.page}")
    c.restoreState()


def _png_flowable(png: bytes) -> Image:
    iw, ih = ImageReader(io.BytesIO(png)).getSize()
    scale = min(CW / iw, _IMG_MAX_H / ih)
    return Image(io.BytesIO(png), width=iw * scale, height=ih * scale)


class DashboardPDFGenerator:
    """One block per tile: title, owning project, chart image, optional narrative."""

    def generate_bytes(self, tiles: Sequence[DashboardTile], title: str = "Dashboard") -> bytes:
        buf = io.BytesIO()
        at = _now_utc()
        doc = SimpleDocTemplate(
            buf, pagesize=landscape(A4),
            leftMargin=MARGIN, rightMargin=MARGIN,
            topMargin=MARGIN, bottomMargin=MARGIN,
            title=title,
        )
        doc.generated_at = at
        doc.build(self._story(tiles, title, at), onFirstPage=_on_page, onLaterPages=_on_page)
        return buf.getvalue()

    def _story(self, tiles, title, at) -> List:
        s = _s()
        story = [
            Paragraph(escape(title), s['title']),
            Paragraph(f"{len(tiles)} chart{'s' if len(tiles) != 1 else ''} · {at}", s['meta']),
            HRFlowable(width="100%", thickness=1.2, color=BRAND, spaceBefore=6, spaceAfter=12),
        ]
        if not tiles:
            story.append(Paragraph("The dashboard is empty.", s['empty']))
            return story
        for tile in tiles:
            story += [KeepTogether(self._tile(tile, s)), Spacer(1, 14)]
        return story

    def _tile(self, tile: DashboardTile, s) -> List:
        head = Table([[Paragraph(escape(tile.title), s['tile']),
                       Paragraph(escape(tile.project_name), s['proj'])]],
                     colWidths=[CW * 0.7, CW * 0.3])
        head.setStyle(TableStyle([
            ('BACKGROUND',    (0,0), (-1,-1), CARD_BG),
            ('LINEBEFORE',    (0,0), (0,-1),  3, BRAND),
            ('ALIGN',         (1,0), (1,-1), 'RIGHT'),
            ('VALIGN',        (0,0), (-1,-1), 'MIDDLE'),
            ('TOPPADDING',    (0,0), (-1,-1), 6),
            ('BOTTOMPADDING', (0,0), (-1,-1), 6),
            ('LINEBELOW',     (0,-1), (-1,-1), 0.5, EDGE),
        ]))
        it = [head, Spacer(1, 6)]
        if tile.png:
            it.append(_png_flowable(tile.png))
        else:
            it.append(Paragraph("No data to display for this chart.", s['empty']))
        if tile.narrative:
            it += [Spacer(1, 4), Paragraph(escape(tile.narrative), s['b'])]
        return it
