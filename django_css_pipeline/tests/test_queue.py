import json
import os

from django.test import SimpleTestCase, override_settings

from django_css_pipeline.constants import CSSType
from django_css_pipeline.queue import EntryStatus, JobQueue, QueueEntry
from django_css_pipeline.storage import ArtifactStore

from .base import TempRootMixin


def entry(n, **kwargs):
    kwargs.setdefault("url_tag", f"https://example.com/{n}/")
    return QueueEntry(url=f"https://example.com/{n}/", **kwargs)


class QueueEntryTest(SimpleTestCase):
    def test_user_agent_is_truncated(self):
        self.assertEqual(len(QueueEntry(url="u", user_agent="a" * 500).user_agent), 200)

    def test_missing_is_webp_defaults_false(self):
        restored = QueueEntry.from_dict(
            {"url": "u", "url_tag": "t", "vary": "", "uid": 0, "user_agent": "", "is_mobile": 0}
        )
        self.assertIs(restored.is_webp, False)
        self.assertEqual(restored.status, EntryStatus.PENDING)

    def test_requested_status_round_trips(self):
        original = entry(1, status=EntryStatus.REQUESTED)
        data = original.to_dict()
        self.assertEqual(data["_status"], "requested")
        self.assertEqual(QueueEntry.from_dict(data), original)

    def test_ccss_requires_url_tag(self):
        self.assertFalse(QueueEntry(url="u").is_valid(CSSType.CCSS))
        self.assertTrue(QueueEntry(url="u").is_valid(CSSType.UCSS))
        self.assertFalse(QueueEntry.from_dict("garbage").is_valid(CSSType.UCSS))


class JobQueueTest(TempRootMixin, SimpleTestCase):
    def setUp(self):
        super().setUp()
        self.queue = JobQueue()

    def test_enqueue_persists_across_instances(self):
        self.assertTrue(self.queue.enqueue(CSSType.CCSS, entry(1, vary="mobile")))

        restored = JobQueue().load(CSSType.CCSS)
        self.assertEqual(list(restored), ["mobile https://example.com/1/"])
        self.assertEqual(restored["mobile https://example.com/1/"].vary, "mobile")

    def test_queue_file_location(self):
        self.queue.enqueue(CSSType.UCSS, entry(1))
        self.assertTrue(os.path.exists(os.path.join(self.root, "ucss", ".litespeed_conf.dat")))

    @override_settings(CSS_PIPELINE_TENANT_ID=7)
    def test_tenant_scoped_location(self):
        queue = JobQueue(store=ArtifactStore())
        queue.enqueue(CSSType.CCSS, entry(1))
        self.assertTrue(os.path.exists(os.path.join(self.root, "ccss", "7", ".litespeed_conf.dat")))

    def test_same_url_different_vary_gets_two_slots(self):
        self.queue.enqueue(CSSType.CCSS, entry(1, vary=""))
        self.queue.enqueue(CSSType.CCSS, entry(1, vary="mobile"))
        self.queue.enqueue(CSSType.CCSS, entry(1, vary="mobile"))
        self.assertEqual(len(self.queue.load(CSSType.CCSS)), 2)

    def test_full_queue_rejects_new_keys(self):
        queue = {f" tag-{n}": entry(n, url_tag=f"tag-{n}") for n in range(500)}
        self.queue.save(CSSType.CCSS, queue)

        self.assertFalse(self.queue.enqueue(CSSType.CCSS, entry(999)))
        self.assertEqual(len(self.queue.load(CSSType.CCSS)), 500)

        # Replacing a key that is already queued does not grow the queue
        self.assertTrue(self.queue.enqueue(CSSType.CCSS, entry(3, url_tag="tag-3")))
        self.assertEqual(len(self.queue.load(CSSType.CCSS)), 500)

    def test_queues_are_independent_per_type(self):
        self.queue.enqueue(CSSType.CCSS, entry(1))
        self.assertEqual(self.queue.load(CSSType.UCSS), {})

    def test_corrupt_file_loads_empty(self):
        path = self.queue.path(CSSType.CCSS)
        os.makedirs(os.path.dirname(path))
        with open(path, "w") as f:
            f.write("{not json")
        self.assertEqual(self.queue.load(CSSType.CCSS), {})

    def test_order_is_preserved(self):
        for n in (3, 1, 2):
            self.queue.enqueue(CSSType.CCSS, entry(n))
        with open(self.queue.path(CSSType.CCSS)) as f:
            keys = list(json.load(f))
        self.assertEqual(keys, list(self.queue.load(CSSType.CCSS)))
        self.assertEqual([k.split("/")[-2] for k in keys], ["3", "1", "2"])

    def test_remove_and_clear(self):
        self.queue.enqueue(CSSType.CCSS, entry(1))
        self.queue.enqueue(CSSType.CCSS, entry(2))

        self.assertTrue(self.queue.remove(CSSType.CCSS, " https://example.com/1/"))
        self.assertFalse(self.queue.remove(CSSType.CCSS, "missing"))
        self.assertEqual(self.queue.clear(CSSType.CCSS), 1)
        self.assertFalse(os.path.exists(self.queue.path(CSSType.CCSS)))
        self.assertEqual(self.queue.clear(CSSType.CCSS), 0)
