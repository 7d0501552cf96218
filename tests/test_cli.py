import contextlib
import io
import tempfile
import unittest
from pathlib import Path

from epub_fixtures import sample_book_bytes

from epubinfo import main
from folio.reader import read_book


def _run(argv: list[str]) -> tuple[int, str, str]:
    out = io.StringIO()
    err = io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        code = main(argv)
    return code, out.getvalue(), err.getvalue()


class EpubInfoTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.book_path = self.tmp / "sample.epub"
        self.book_path.write_bytes(sample_book_bytes())

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_summary(self) -> None:
        code, out, _err = _run([str(self.book_path)])
        self.assertEqual(code, 0)
        self.assertIn("Title: Sample Book", out)
        self.assertIn("Authors: Ada Lovelace, Charles Babbage", out)
        self.assertIn("Version: 3.0", out)
        self.assertIn("Resources: html=3 css=1 images=2 fonts=1 other=1", out)
        self.assertIn("Cover: 4x3", out)

    def test_toc_is_indented_by_depth(self) -> None:
        code, out, _err = _run([str(self.book_path), "--toc"])
        self.assertEqual(code, 0)
        self.assertIn("\nChapter One (/OEBPS/Text/ch1.xhtml)\n", out)
        self.assertIn("\n  Section 1.1 (/OEBPS/Text/ch1.xhtml#s1)\n", out)

    def test_text(self) -> None:
        code, out, _err = _run([str(self.book_path), "--text"])
        self.assertEqual(code, 0)
        self.assertIn("It was a dark & stormy night.", out)

    def test_rewrite(self) -> None:
        target = self.tmp / "out" / "copy.epub"
        code, out, _err = _run([str(self.book_path), "--rewrite", str(target)])
        self.assertEqual(code, 0)
        self.assertIn(f"EPUB saved to: {target}", out)
        self.assertEqual(read_book(target).title, "Sample Book")

    def test_errors_exit_non_zero(self) -> None:
        code, _out, err = _run([str(self.tmp / "missing.epub")])
        self.assertEqual(code, 1)
        self.assertIn("missing.epub", err)

        broken = self.tmp / "broken.epub"
        broken.write_bytes(b"not a zip")
        code, _out, err = _run([str(broken)])
        self.assertEqual(code, 1)
        self.assertIn("EPUB parsing error", err)


if __name__ == "__main__":
    unittest.main()
