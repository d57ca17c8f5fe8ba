"""
Tests for document text extraction and line filtering.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from unittest.mock import MagicMock, patch

from PIL import Image

from app.services.ocr import DocumentTextService, relevant_lines

CONTROL_SHEET = """Controlo de Entradas
Alojamento: Todos  Edifício: Todos
Ref Check-in Check-out Estado Hóspede
A101-X 20-06-2025 23-06-2025 Confirmada Maria Silva
Ref Check-in Check-out Estado Hóspede
A101-X 20-06-2025 23-06-2025 Confirmada Maria Silva
B202-Y 21-06-2025 24-06-2025 Confirmada Bruno Lima +351912345678
pág. 1
"""


class TestRelevantLines:

    def test_keeps_data_lines_once(self):
        assert relevant_lines(CONTROL_SHEET).splitlines() == [
            "A101-X 20-06-2025 23-06-2025 Confirmada Maria Silva",
            "B202-Y 21-06-2025 24-06-2025 Confirmada Bruno Lima +351912345678",
        ]

    def test_limit(self):
        text = "\n".join(f"Hóspede Numero{i} 20-06-2025" for i in range(10))
        assert len(relevant_lines(text, limit=3).splitlines()) == 3

    def test_no_data(self):
        assert relevant_lines("ok\n\n---") == ""


def _pdf_reader(*page_texts):
    reader = MagicMock()
    reader.pages = [MagicMock(**{"extract_text.return_value": text}) for text in page_texts]
    return reader


class TestDocumentTextService:

    def test_plain_text(self):
        service = DocumentTextService(tesseract_cmd="tesseract")
        assert service.extract_text("Maria Silva\n".encode('utf-8'), "text/plain") == "Maria Silva"

    def test_pdf_text_layer(self):
        page = "A101-X 20-06-2025 23-06-2025 Confirmada Maria Silva Aroeira II"
        with patch('app.services.ocr.PyPDF2.PdfReader', return_value=_pdf_reader(page, None)), \
                patch('app.services.ocr.convert_from_bytes') as convert:
            text = DocumentTextService(tesseract_cmd="tesseract").extract_text(b"%PDF", "application/pdf")

        assert text == page
        convert.assert_not_called()

    def test_scanned_pdf_falls_back_to_ocr(self):
        with patch('app.services.ocr.PyPDF2.PdfReader', return_value=_pdf_reader("")), \
                patch('app.services.ocr.convert_from_bytes', return_value=[Image.new('RGB', (10, 10))]), \
                patch('app.services.ocr.pytesseract.image_to_string', return_value="Maria Silva 20-06-2025") as ocr:
            text = DocumentTextService(tesseract_cmd="tesseract").extract_text(b"%PDF", "application/pdf")

        assert text == "Maria Silva 20-06-2025"
        assert ocr.call_args[1]['config'] == "--oem 3 --psm 6"

    def test_image(self):
        with patch('app.services.ocr.Image.open', return_value=Image.new('RGB', (10, 10))), \
                patch('app.services.ocr.pytesseract.image_to_string', return_value=" Bruno Lima \n"):
            text = DocumentTextService(tesseract_cmd="tesseract").extract_text(b"png", "image/png")
        assert text == "Bruno Lima"

    def test_unreadable_pdf(self):
        with patch('app.services.ocr.PyPDF2.PdfReader', side_effect=ValueError("broken")), \
                patch('app.services.ocr.convert_from_bytes', side_effect=RuntimeError("poppler missing")):
            assert DocumentTextService(tesseract_cmd="tesseract").extract_text(b"x", "application/pdf") == ""

    def test_unsupported_type(self):
        assert DocumentTextService(tesseract_cmd="tesseract").extract_text(b"x", "application/zip", "a.zip") == ""
