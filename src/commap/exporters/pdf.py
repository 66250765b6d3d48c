"""Compose a rendered region into a single landscape A4 PDF page."""

from __future__ import annotations

import io

from PIL import Image
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

DEFAULT_MARGIN_MM = 10.0


def fit_to_page(
    image_size: tuple[int, int],
    page_size: tuple[float, float],
    margin: float,
) -> tuple[float, float, float, float]:
    """Placement ``(x, y, width, height)`` of an image on a page.

    The image is scaled to fit inside the margins, keeping its aspect
    ratio, and centered.
    """
    img_w, img_h = image_size
    page_w, page_h = page_size
    avail_w = page_w - 2 * margin
    avail_h = page_h - 2 * margin
    k = min(avail_w / img_w, avail_h / img_h)
    w = img_w * k
    h = img_h * k
    return ((page_w - w) / 2, (page_h - h) / 2, w, h)


def compose_pdf(
    image: Image.Image,
    title: str = "",
    margin_mm: float = DEFAULT_MARGIN_MM,
) -> bytes:
    """Place one rendered image on a landscape A4 page and return the PDF."""
    page_size = landscape(A4)
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=page_size)
    if title:
        c.setTitle(title)
    x, y, w, h = fit_to_page(image.size, page_size, margin_mm * mm)
    c.drawImage(ImageReader(image), x, y, width=w, height=h)
    c.showPage()
    c.save()
    return buf.getvalue()
