import asyncio
import io
import unittest

from docx import Document

from chat_context.ingestion.local_parser import LocalFileParser
from chat_context.ingestion.sources import FileSource, is_text_file_path


def _docx_bytes() -> bytes:
    doc = Document()
    doc.add_paragraph("Quarterly summary")
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Revenue"
    table.rows[0].cells[1].text = "42"
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


class LocalFileParserTests(unittest.TestCase):
    def test_text_file_is_decoded_and_normalized(self) -> None:
        file = FileSource("notes.txt", "\ufeffline one\r\nline two".encode("utf-8"))
        result = asyncio.run(LocalFileParser().parse(file))
        self.assertTrue(result.success)
        self.assertEqual("line one\nline two", result.content)

    def test_html_file_is_reduced_to_text(self) -> None:
        html = b"<html><head><style>p{}</style></head><body><p>Hello</p><ul><li>one</li></ul></body></html>"
        result = asyncio.run(LocalFileParser().parse(FileSource("page.html", html)))
        self.assertTrue(result.success)
        self.assertIn("Hello", result.content)
        self.assertIn("- one", result.content)
        self.assertNotIn("p{}", result.content)

    def test_docx_paragraphs_and_tables(self) -> None:
        result = asyncio.run(LocalFileParser().parse(FileSource("report.docx", _docx_bytes())))
        self.assertTrue(result.success)
        self.assertIn("Quarterly summary", result.content)
        self.assertIn("Revenue\t42", result.content)

    def test_unsupported_format(self) -> None:
        result = asyncio.run(LocalFileParser().parse(FileSource("scan.pdf", b"%PDF")))
        self.assertFalse(result.success)

    def test_unavailable_platform_supports_nothing(self) -> None:
        parser = LocalFileParser(available=False)
        result = asyncio.run(parser.parse(FileSource("notes.txt", b"text")))
        self.assertFalse(parser.available)
        self.assertFalse(result.success)

    def test_text_file_detection(self) -> None:
        self.assertTrue(is_text_file_path("README.MD"))
        self.assertTrue(is_text_file_path("src/app.py"))
        self.assertFalse(is_text_file_path("photo.png"))
        self.assertFalse(is_text_file_path("report.pdf"))


if __name__ == "__main__":
    unittest.main()
