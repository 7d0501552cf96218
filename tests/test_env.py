import os
import tempfile
import unittest
from pathlib import Path

from folio.archive import DEFAULT_MAX_ENTRY_SIZE, max_entry_size
from folio.env import read_env, read_env_flag, read_env_int
from folio.writer import default_language


def _restore_env(name: str, previous: str | None) -> None:
    if previous is None:
        os.environ.pop(name, None)
    else:
        os.environ[name] = previous


class EnvFileTests(unittest.TestCase):
    def test_read_env_prefers_plain_value(self) -> None:
        prev_plain = os.environ.get("FOLIO_SAMPLE")
        prev_file = os.environ.get("FOLIO_SAMPLE_FILE")
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False) as tmp:
            tmp.write("from-file")
            file_path = tmp.name
        try:
            os.environ["FOLIO_SAMPLE"] = "from-env"
            os.environ["FOLIO_SAMPLE_FILE"] = file_path
            self.assertEqual(read_env("FOLIO_SAMPLE"), "from-env")
        finally:
            Path(file_path).unlink(missing_ok=True)
            _restore_env("FOLIO_SAMPLE", prev_plain)
            _restore_env("FOLIO_SAMPLE_FILE", prev_file)

    def test_read_env_supports_file_suffix(self) -> None:
        prev_plain = os.environ.get("FOLIO_SAMPLE")
        prev_file = os.environ.get("FOLIO_SAMPLE_FILE")
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False) as tmp:
            tmp.write("from-file\n")
            file_path = tmp.name
        try:
            os.environ.pop("FOLIO_SAMPLE", None)
            os.environ["FOLIO_SAMPLE_FILE"] = file_path
            self.assertEqual(read_env("FOLIO_SAMPLE"), "from-file")
        finally:
            Path(file_path).unlink(missing_ok=True)
            _restore_env("FOLIO_SAMPLE", prev_plain)
            _restore_env("FOLIO_SAMPLE_FILE", prev_file)

    def test_missing_file_falls_back_to_default(self) -> None:
        prev_plain = os.environ.get("FOLIO_SAMPLE")
        prev_file = os.environ.get("FOLIO_SAMPLE_FILE")
        try:
            os.environ.pop("FOLIO_SAMPLE", None)
            os.environ["FOLIO_SAMPLE_FILE"] = "/nonexistent/folio/sample.txt"
            self.assertEqual(read_env("FOLIO_SAMPLE", "fallback"), "fallback")
        finally:
            _restore_env("FOLIO_SAMPLE", prev_plain)
            _restore_env("FOLIO_SAMPLE_FILE", prev_file)

    def test_int_and_flag_parsing(self) -> None:
        prev_plain = os.environ.get("FOLIO_SAMPLE")
        try:
            os.environ["FOLIO_SAMPLE"] = " 42 "
            self.assertEqual(read_env_int("FOLIO_SAMPLE", 7), 42)
            os.environ["FOLIO_SAMPLE"] = "lots"
            self.assertEqual(read_env_int("FOLIO_SAMPLE", 7), 7)
            for value, expected in (("yes", True), ("ON", True), ("1", True), ("0", False), ("nope", False)):
                os.environ["FOLIO_SAMPLE"] = value
                self.assertIs(read_env_flag("FOLIO_SAMPLE"), expected, value)
            os.environ.pop("FOLIO_SAMPLE")
            self.assertFalse(read_env_flag("FOLIO_SAMPLE"))
        finally:
            _restore_env("FOLIO_SAMPLE", prev_plain)

    def test_settings_can_read_from_file(self) -> None:
        prev_size = os.environ.get("FOLIO_MAX_ENTRY_SIZE")
        prev_size_file = os.environ.get("FOLIO_MAX_ENTRY_SIZE_FILE")
        prev_lang = os.environ.get("FOLIO_DEFAULT_LANGUAGE")
        prev_lang_file = os.environ.get("FOLIO_DEFAULT_LANGUAGE_FILE")
        with tempfile.TemporaryDirectory() as tmp:
            size_file = Path(tmp) / "max_size.txt"
            lang_file = Path(tmp) / "lang.txt"
            size_file.write_text("1024\n", encoding="utf-8")
            lang_file.write_text("de", encoding="utf-8")
            try:
                os.environ.pop("FOLIO_MAX_ENTRY_SIZE", None)
                os.environ.pop("FOLIO_DEFAULT_LANGUAGE", None)
                self.assertEqual(max_entry_size(), DEFAULT_MAX_ENTRY_SIZE)
                os.environ["FOLIO_MAX_ENTRY_SIZE_FILE"] = str(size_file)
                os.environ["FOLIO_DEFAULT_LANGUAGE_FILE"] = str(lang_file)
                self.assertEqual(max_entry_size(), 1024)
                self.assertEqual(default_language(), "de")
            finally:
                _restore_env("FOLIO_MAX_ENTRY_SIZE", prev_size)
                _restore_env("FOLIO_MAX_ENTRY_SIZE_FILE", prev_size_file)
                _restore_env("FOLIO_DEFAULT_LANGUAGE", prev_lang)
                _restore_env("FOLIO_DEFAULT_LANGUAGE_FILE", prev_lang_file)


if __name__ == "__main__":
    unittest.main()
