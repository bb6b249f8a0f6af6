import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from tidyai.__main__ import main

RESPONSE = '[{"folderName": "Docs", "items": [{"name": "a.txt"}, {"name": "b.txt"}]}]'


@patch.dict(os.environ, {"TIDYAI_API_KEY": "sk-test"}, clear=True)
@patch("tidyai.__main__.ClassifierGateway")
class TestCli(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "a.txt").write_text("a")
        (self.root / "b.txt").write_text("b")

    def tearDown(self):
        self._tmp.cleanup()

    def names(self):
        return sorted(p.name for p in self.root.iterdir())

    def test_dry_run_changes_nothing(self, mock_gateway_cls):
        mock_gateway_cls.return_value.classify_batch.return_value = RESPONSE

        code = main([str(self.root), "--dry-run"])

        self.assertEqual(code, 0)
        self.assertEqual(self.names(), ["a.txt", "b.txt"])

    def test_non_interactive_declines_without_yes(self, mock_gateway_cls):
        mock_gateway_cls.return_value.classify_batch.return_value = RESPONSE

        with patch("tidyai.utils.sys") as mock_sys:
            mock_sys.stdin.isatty.return_value = False
            code = main([str(self.root)])

        self.assertEqual(code, 0)
        self.assertEqual(self.names(), ["a.txt", "b.txt"])

    def test_apply_with_yes_then_undo(self, mock_gateway_cls):
        mock_gateway_cls.return_value.classify_batch.return_value = RESPONSE

        code = main([str(self.root), "--yes"])

        self.assertEqual(code, 0)
        self.assertEqual(self.names(), [".tidyai", "Docs"])
        self.assertEqual(sorted(p.name for p in (self.root / "Docs").iterdir()), ["a.txt", "b.txt"])

        with patch("tidyai.__main__.ask_choice", return_value="undo"):
            code = main([str(self.root)])

        self.assertEqual(code, 0)
        self.assertEqual(self.names(), ["a.txt", "b.txt"])

    def test_existing_record_non_interactive_stops(self, mock_gateway_cls):
        mock_gateway_cls.return_value.classify_batch.return_value = RESPONSE
        main([str(self.root), "--yes"])
        mock_gateway_cls.reset_mock()

        with patch("tidyai.utils.sys") as mock_sys:
            mock_sys.stdin.isatty.return_value = False
            code = main([str(self.root)])

        self.assertEqual(code, 0)
        mock_gateway_cls.return_value.classify_batch.assert_not_called()
        self.assertIn(".tidyai", self.names())

    def test_continue_discards_record(self, mock_gateway_cls):
        mock_gateway_cls.return_value.classify_batch.return_value = (
            '[{"folderName": "Everything", "items": [{"name": "Docs"}]}]'
        )
        (self.root / "Docs").mkdir()
        (self.root / "a.txt").rename(self.root / "Docs" / "a.txt")
        (self.root / "b.txt").rename(self.root / "Docs" / "b.txt")
        (self.root / ".tidyai").write_text(
            '{"timestamp": "t", "targetPath": "x", "originalStructure": [], "newStructure": [], "version": "2.1.0"}'
        )

        with patch("tidyai.__main__.ask_choice", return_value="continue"):
            code = main([str(self.root), "--dry-run", "--yes"])

        # Dry runs never discard the record
        self.assertEqual(code, 0)
        self.assertTrue((self.root / ".tidyai").exists())

        with patch("tidyai.__main__.ask_choice", side_effect=["continue", "yes", "keep"]):
            code = main([str(self.root)])

        self.assertEqual(code, 0)
        self.assertTrue((self.root / "Everything" / "Docs" / "a.txt").exists())

    def test_no_suggestion_changes_nothing(self, mock_gateway_cls):
        mock_gateway_cls.return_value.classify_batch.return_value = "[]"
        mock_gateway_cls.return_value.classify_recovery.return_value = "[]"

        code = main([str(self.root), "--yes"])

        self.assertEqual(code, 0)
        self.assertEqual(self.names(), ["a.txt", "b.txt"])

    def test_case_only_names_stop_the_run(self, mock_gateway_cls):
        (self.root / "A.txt").write_text("A")
        if len(self.names()) < 3:
            self.skipTest("case-insensitive filesystem")

        code = main([str(self.root), "--yes"])

        self.assertEqual(code, 1)
        mock_gateway_cls.return_value.classify_batch.assert_not_called()
        self.assertEqual(self.names(), ["A.txt", "a.txt", "b.txt"])

    def test_missing_api_key(self, mock_gateway_cls):
        with patch.dict(os.environ, {}, clear=True), patch("tidyai.config.load_dotenv"):
            code = main([str(self.root)])
        self.assertEqual(code, 1)
        mock_gateway_cls.assert_not_called()

    def test_missing_folder(self, mock_gateway_cls):
        code = main([str(self.root / "nope")])
        self.assertEqual(code, 1)

    def test_classifier_down(self, mock_gateway_cls):
        from tidyai.exceptions import TransportError

        mock_gateway_cls.return_value.classify_batch.side_effect = TransportError("offline")
        mock_gateway_cls.return_value.classify_recovery.side_effect = TransportError("offline")

        code = main([str(self.root), "--yes", "--retry-delay", "0"])

        self.assertEqual(code, 1)
        self.assertEqual(self.names(), ["a.txt", "b.txt"])


if __name__ == "__main__":
    unittest.main()
