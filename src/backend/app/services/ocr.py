"""
Text extraction for booking documents (PDF control sheets and images).
"""

import io
import logging
import re
from typing import List

import pytesseract
from PIL import Image, ImageEnhance
from pdf2image import convert_from_bytes
import PyPDF2

from app.config import settings

logger = logging.getLogger(__name__)

# Below this many characters a PDF is treated as scanned and OCRed
MIN_TEXT_LAYER_CHARS = 50
MAX_RELEVANT_LINES = 50
TESSERACT_CONFIG = r'--oem 3 --psm 6'

_EMAIL = re.compile(r'@')
_PHONE = re.compile(r'\+?\d{9,}')
_DATE = re.compile(r'\d{2}[-/]\d{2}[-/]\d{4}|\d{4}-\d{2}-\d{2}')
_REFERENCE = re.compile(r'[A-Z]\d{3}-')
_NAME = re.compile(r'[A-ZÀ-Ý][a-zà-ÿ]+\s+[A-ZÀ-Ý][a-zà-ÿ]+')
_AMOUNT = re.compile(r'\d+[.,]\d{2}')


def _is_header_line(line: str) -> bool:
    """Table headers and filter rows repeated on every page of a control sheet."""
    if 'Check-in' in line and 'Check-out' in line and 'Estado' in line:
        return True
    if 'Alojamento' in line and 'Todos' in line:
        return True
    if 'Edifício' in line and 'Não mostrar' in line:
        return True
    return False


def relevant_lines(text: str, limit: int = MAX_RELEVANT_LINES) -> str:
    """
    Reduce a control sheet to its data lines before sending it to a provider.

    Drops short lines, repeated page headers and duplicate lines; keeps
    lines carrying an email, phone, date, booking reference, person name or
    amount. At most `limit` lines are kept.
    """
    kept: List[str] = []
    seen = set()

    for line in text.splitlines():
        trimmed = line.strip()
        if len(trimmed) < 3 or _is_header_line(trimmed) or trimmed in seen:
            continue

        has_data = any(pattern.search(trimmed) for pattern in (
            _EMAIL, _PHONE, _DATE, _REFERENCE, _NAME, _AMOUNT
        ))
        if has_data:
            kept.append(trimmed)
            seen.add(trimmed)

        if len(kept) >= limit:
            break

    logger.debug("Filtered document text", extra={
        "original_chars": len(text),
        "filtered_chars": sum(len(line) + 1 for line in kept)
    })
    return "\n".join(kept)


class DocumentTextService:
    """Extracts raw text from uploaded booking documents."""

    def __init__(self, tesseract_cmd: str = None):
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd or settings.TESSERACT_CMD

    def extract_text_from_image(self, image_data: bytes) -> str:
        """OCR an image (JPEG, PNG, ...)."""
        try:
            image = Image.open(io.BytesIO(image_data))
            image = self._preprocess_image(image)
            return pytesseract.image_to_string(image, config=TESSERACT_CONFIG).strip()
        except Exception as e:
            logger.warning("Error extracting text from image", extra={"error": str(e)})
            return ""

    def extract_text_from_pdf(self, pdf_data: bytes) -> str:
        """
        Extract text from a PDF.

        Uses the text layer first and falls back to OCR for scanned PDFs.
        """
        text = self._extract_pdf_text_direct(pdf_data)

        if len(text.strip()) < MIN_TEXT_LAYER_CHARS:
            logger.info("PDF appears to be image-based, using OCR")
            text = self._extract_pdf_text_ocr(pdf_data)

        return text.strip()

    def _extract_pdf_text_direct(self, pdf_data: bytes) -> str:
        try:
            pdf_reader = PyPDF2.PdfReader(io.BytesIO(pdf_data))
            return "\n".join((page.extract_text() or "") for page in pdf_reader.pages)
        except Exception as e:
            logger.warning("Error in direct PDF text extraction", extra={"error": str(e)})
            return ""

    def _extract_pdf_text_ocr(self, pdf_data: bytes) -> str:
        try:
            pages = []
            for image in convert_from_bytes(pdf_data):
                image = self._preprocess_image(image)
                pages.append(pytesseract.image_to_string(image, config=TESSERACT_CONFIG))
            return "\n".join(pages)
        except Exception as e:
            logger.warning("Error in OCR-based PDF text extraction", extra={"error": str(e)})
            return ""

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """Grayscale and boost contrast for faded scans."""
        try:
            if image.mode != 'RGB':
                image = image.convert('RGB')
            image = image.convert('L')
            return ImageEnhance.Contrast(image).enhance(2.0)
        except Exception as e:
            logger.warning("Error preprocessing image", extra={"error": str(e)})
            return image

    def extract_text(self, file_data: bytes, mime_type: str, filename: str = "") -> str:
        """
        Extract text from a document, detecting the format.

        Args:
            file_data: Raw file bytes
            mime_type: MIME type of the file
            filename: Optional filename for extension detection

        Returns:
            Extracted text, "" for unsupported or unreadable files
        """
        mime_type = mime_type or ""
        name = (filename or "").lower()

        if mime_type == 'text/plain' or name.endswith('.txt'):
            return file_data.decode('utf-8', errors='replace').strip()

        if mime_type == 'application/pdf' or name.endswith('.pdf'):
            return self.extract_text_from_pdf(file_data)

        if mime_type.startswith('image/') or name.endswith(('.jpg', '.jpeg', '.png')):
            return self.extract_text_from_image(file_data)

        logger.warning("Unsupported document type", extra={
            "mime_type": mime_type,
            "document": filename
        })
        return ""
