import unittest
from unittest.mock import MagicMock, patch

from tidyai.exceptions import TransportError
from tidyai.models import Group, MasterGrouping
from tidyai.planning.merge import find_conflicts, merge, parse_conflict_choices, resolve_conflicts
from tidyai.planning.reconcile import reconcile


@patch("tidyai.planning.merge.print_info")
@patch("tidyai.planning.merge.print_warning")
class TestConflictResolution(unittest.TestCase):
    def _images_media_grouping(self):
        master = MasterGrouping()
        with patch("tidyai.planning.reconcile.print_warning"):
            first = reconcile(
                '[{"folderName":"Images","items":[{"name":"a.jpg"},{"name":"a.jpg"}]}]',
                ["a.jpg", "b.png"],
            )
        merge(master, first)
        merge(master, [Group("Media", ["a.jpg", "b.png"])])
        return master

    def test_duplicate_inside_group_collapses_to_one_conflict(self, _warn, _info):
        master = self._images_media_grouping()

        self.assertEqual(master.get("Images").items, ["a.jpg"])
        conflicts = find_conflicts(master)
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].entry_name, "a.jpg")
        self.assertEqual(conflicts[0].candidate_groups, ("Images", "Media"))

    def test_unresponsive_classifier_falls_back_to_first_group(self, _warn, _info):
        master = self._images_media_grouping()
        gateway = MagicMock()
        gateway.resolve_conflicts.side_effect = TransportError("connection refused")

        master, resolved = resolve_conflicts(master, gateway)

        self.assertEqual(resolved, 1)
        self.assertEqual(master.get("Images").items, ["a.jpg"])
        self.assertEqual(master.get("Media").items, ["b.png"])
        self.assertEqual(find_conflicts(master), [])

    def test_no_gateway_falls_back_to_first_group(self, _warn, _info):
        master = self._images_media_grouping()
        master, resolved = resolve_conflicts(master)
        self.assertEqual(resolved, 1)
        self.assertIn("a.jpg", master.get("Images"))

    def test_classifier_choice_is_applied(self, _warn, _info):
        master = self._images_media_grouping()
        gateway = MagicMock()
        gateway.resolve_conflicts.return_value = '```json\n{"A.JPG": "media"}\n```'

        master, resolved = resolve_conflicts(master, gateway)

        self.assertEqual(resolved, 1)
        # Images became empty and is removed
        self.assertIsNone(master.get("Images"))
        self.assertEqual(master.get("Media").items, ["a.jpg", "b.png"])

    def test_non_ascii_names_match_their_sanitized_echo(self, warn, _info):
        master = MasterGrouping([
            Group("Fotos", ["café.jpg"]),
            Group("Fotos Müll", ["café.jpg", "b.png"]),
        ])
        gateway = MagicMock()
        gateway.resolve_conflicts.return_value = '{"caf?.jpg": "Fotos M?ll"}'

        master, resolved = resolve_conflicts(master, gateway)

        self.assertEqual(resolved, 1)
        self.assertIsNone(master.get("Fotos"))
        self.assertEqual(master.get("Fotos Müll").items, ["café.jpg", "b.png"])
        warn.assert_not_called()

    def test_choice_outside_candidates_falls_back(self, _warn, _info):
        master = self._images_media_grouping()
        gateway = MagicMock()
        gateway.resolve_conflicts.return_value = '{"a.jpg": "Somewhere Else"}'

        master, _ = resolve_conflicts(master, gateway)
        self.assertIn("a.jpg", master.get("Images"))
        self.assertNotIn("a.jpg", master.get("Media"))

    def test_no_conflicts_skips_classifier(self, _warn, _info):
        master = MasterGrouping([Group("Docs", ["a.txt"])])
        gateway = MagicMock()

        _, resolved = resolve_conflicts(master, gateway)

        self.assertEqual(resolved, 0)
        gateway.resolve_conflicts.assert_not_called()

    def test_resolution_is_total(self, _warn, _info):
        master = MasterGrouping([
            Group("A", ["x", "y", "z"]),
            Group("B", ["y", "z"]),
            Group("C", ["z", "w"]),
        ])
        master, resolved = resolve_conflicts(master)

        self.assertEqual(resolved, 2)
        self.assertEqual(find_conflicts(master), [])
        self.assertEqual(master.item_count(), 4)


class TestMerge(unittest.TestCase):
    def test_merge_concatenates_case_insensitively(self):
        master = MasterGrouping([Group("Docs", ["a.txt"])])
        merge(master, [Group("docs", ["b.txt"]), Group("Images", ["c.jpg"])])

        self.assertEqual(master.group_names(), ["Docs", "Images"])
        self.assertEqual(master.get("DOCS").items, ["a.txt", "b.txt"])

    def test_parse_conflict_choices(self):
        self.assertEqual(parse_conflict_choices('Answer: {"a": "X", "b": 3}'), {"a": "X"})
        self.assertEqual(parse_conflict_choices("no json here"), {})
        self.assertEqual(parse_conflict_choices('["a"]'), {})


if __name__ == "__main__":
    unittest.main()
