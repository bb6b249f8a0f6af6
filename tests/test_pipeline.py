import json
import unittest

from tidyai.config import PipelineSettings
from tidyai.exceptions import ClassificationFailedError, TransportError, TruncatedResponseError
from tidyai.models import Entry, EntryKind, UNORGANIZED_GROUP
from tidyai.planning.pipeline import OrganizationPipeline


def by_extension(entries):
    """Classifier stand-in: one folder per extension."""
    groups = {}
    for e in entries:
        folder = {".jpg": "Images", ".txt": "Documents"}.get(e.extension, "Other Files")
        groups.setdefault(folder, []).append({"name": e.name})
    return json.dumps([{"folderName": k, "items": v} for k, v in groups.items()])


class FakeGateway:
    def __init__(self, on_batch=None, on_recovery=None, on_conflicts=None):
        self.on_batch = on_batch or (lambda batch: by_extension(batch.entries))
        self.on_recovery = on_recovery or (lambda entries, existing: by_extension(entries))
        self.on_conflicts = on_conflicts or (lambda conflicts: "{}")
        self.batches = []
        self.recoveries = []
        self.conflict_calls = 0

    def classify_batch(self, batch):
        self.batches.append(batch)
        return self.on_batch(batch)

    def classify_recovery(self, entries, existing_groups):
        self.recoveries.append((list(entries), list(existing_groups)))
        return self.on_recovery(entries, existing_groups)

    def resolve_conflicts(self, conflicts):
        self.conflict_calls += 1
        return self.on_conflicts(conflicts)


def make_entries(count):
    entries = []
    for i in range(count):
        ext = [".jpg", ".txt", ".bin"][i % 3]
        entries.append(Entry(f"item_{i:03d}{ext}", EntryKind.FILE, ext))
    return entries


def assert_exact_coverage(test, grouping, entries):
    placed = [n for g in grouping for n in g.items]
    test.assertEqual(sorted(placed), sorted(e.name for e in entries))


class TestOrganizationPipeline(unittest.TestCase):
    def setUp(self):
        self.settings = PipelineSettings(retry_delay=0)

    def test_single_batch(self):
        entries = make_entries(10)
        gateway = FakeGateway()

        result = OrganizationPipeline(gateway, self.settings).run(entries)

        self.assertEqual(len(gateway.batches), 1)
        self.assertEqual(gateway.recoveries, [])
        assert_exact_coverage(self, result.grouping, entries)
        self.assertEqual(result.report.requests_succeeded, 1)

    def test_large_input_covers_every_entry_once(self):
        entries = make_entries(200)
        gateway = FakeGateway()

        result = OrganizationPipeline(gateway, self.settings).run(entries)

        self.assertEqual([len(b) for b in gateway.batches], [75, 75, 50])
        self.assertEqual(gateway.batches[0].existing_groups, ())
        self.assertEqual(set(gateway.batches[1].existing_groups), {"Images", "Documents", "Other Files"})
        self.assertEqual(result.grouping.group_names(), ["Images", "Documents", "Other Files"])
        assert_exact_coverage(self, result.grouping, entries)

    def test_failed_batch_is_retried_then_recovered(self):
        entries = make_entries(100)
        calls = {"n": 0}

        def on_batch(batch):
            calls["n"] += 1
            if batch.number == 2:
                raise TransportError("connection reset")
            return by_extension(batch.entries)

        gateway = FakeGateway(on_batch=on_batch)
        result = OrganizationPipeline(gateway, self.settings).run(entries)

        # batch 1 once, batch 2 twice
        self.assertEqual(calls["n"], 3)
        self.assertEqual(result.report.failed_batches, [2])
        self.assertEqual(len(gateway.recoveries), 1)
        self.assertEqual(len(gateway.recoveries[0][0]), 25)
        self.assertEqual(result.report.recovered, 25)
        self.assertEqual(result.report.unorganized, 0)
        assert_exact_coverage(self, result.grouping, entries)

    def test_truncated_batch_is_not_retried(self):
        entries = make_entries(10)
        attempts = []

        def on_batch(batch):
            attempts.append(batch.number)
            raise TruncatedResponseError("cut off")

        gateway = FakeGateway(on_batch=on_batch)
        result = OrganizationPipeline(gateway, self.settings).run(entries)

        self.assertEqual(attempts, [1])
        self.assertEqual(result.report.recovered, 10)
        assert_exact_coverage(self, result.grouping, entries)

    def test_omitted_entries_go_to_recovery(self):
        entries = make_entries(9)

        def on_batch(batch):
            return by_extension([e for e in batch.entries if e.extension != ".bin"])

        gateway = FakeGateway(on_batch=on_batch)
        result = OrganizationPipeline(gateway, self.settings).run(entries)

        self.assertEqual(len(gateway.recoveries), 1)
        self.assertEqual(len(gateway.recoveries[0][0]), 3)
        self.assertIn("Images", gateway.recoveries[0][1])
        assert_exact_coverage(self, result.grouping, entries)

    def test_unrecoverable_entries_go_to_unorganized(self):
        entries = make_entries(9)

        def on_batch(batch):
            return by_extension([e for e in batch.entries if e.extension != ".bin"])

        def on_recovery(entries, existing):
            raise TransportError("down")

        gateway = FakeGateway(on_batch=on_batch, on_recovery=on_recovery)
        result = OrganizationPipeline(gateway, self.settings).run(entries)

        unorganized = result.grouping.get(UNORGANIZED_GROUP)
        self.assertEqual(len(unorganized), 3)
        self.assertEqual(result.report.unorganized, 3)
        assert_exact_coverage(self, result.grouping, entries)

    def test_hallucinations_never_reach_the_grouping(self):
        entries = make_entries(3)

        def on_batch(batch):
            return json.dumps([
                {"folderName": "Stuff", "items": [{"name": e.name} for e in batch.entries] + [{"name": "ghost.txt"}]},
            ])

        result = OrganizationPipeline(FakeGateway(on_batch=on_batch), self.settings).run(entries)

        self.assertNotIn("ghost.txt", result.grouping.get("Stuff").items)
        assert_exact_coverage(self, result.grouping, entries)

    def test_conflicts_are_resolved(self):
        entries = [Entry("a.jpg", EntryKind.FILE, ".jpg"), Entry("b.png", EntryKind.FILE, ".png")]

        def on_batch(batch):
            return json.dumps([
                {"folderName": "Images", "items": [{"name": "a.jpg"}, {"name": "a.jpg"}]},
                {"folderName": "Media", "items": [{"name": "a.jpg"}, {"name": "b.png"}]},
            ])

        gateway = FakeGateway(on_batch=on_batch, on_conflicts=lambda conflicts: '{"a.jpg": "Media"}')
        result = OrganizationPipeline(gateway, self.settings).run(entries)

        self.assertEqual(gateway.conflict_calls, 1)
        self.assertEqual(result.report.conflicts_resolved, 1)
        self.assertIsNone(result.grouping.get("Images"))
        assert_exact_coverage(self, result.grouping, entries)

    def test_nothing_succeeds(self):
        entries = make_entries(5)

        def fail(*args):
            raise TransportError("offline")

        gateway = FakeGateway(on_batch=fail, on_recovery=fail)
        with self.assertRaises(ClassificationFailedError):
            OrganizationPipeline(gateway, self.settings).run(entries)

    def test_repeated_failures_shrink_recovery_chunks(self):
        entries = make_entries(300)

        def on_batch(batch):
            raise TruncatedResponseError("cut off")

        gateway = FakeGateway(on_batch=on_batch)
        result = OrganizationPipeline(gateway, self.settings).run(entries)

        # 75, 75, then shrunk to 52 for the rest
        self.assertEqual([len(b) for b in gateway.batches[:3]], [75, 75, 52])
        self.assertTrue(all(len(chunk) <= 52 for chunk, _ in gateway.recoveries))
        assert_exact_coverage(self, result.grouping, entries)

    def test_empty_answers_leave_nothing_to_apply(self):
        entries = make_entries(2)
        gateway = FakeGateway(on_batch=lambda batch: "[]", on_recovery=lambda entries, existing: "[]")

        result = OrganizationPipeline(gateway, self.settings).run(entries)

        self.assertFalse(result.grouping)
        self.assertEqual(result.report.unorganized, 0)
        self.assertEqual(len(gateway.recoveries), 1)

    def test_empty_input(self):
        gateway = FakeGateway()
        result = OrganizationPipeline(gateway, self.settings).run([])
        self.assertFalse(result.grouping)
        self.assertEqual(gateway.batches, [])


if __name__ == "__main__":
    unittest.main()
