import json

from django.test import TestCase, override_settings
from django.urls import reverse

from django_css_pipeline.constants import CSSType
from django_css_pipeline.queue import JobQueue, QueueEntry
from django_css_pipeline.storage import ArtifactStore

from .base import TempRootMixin


@override_settings(CSS_PIPELINE_NOTIFY_TOKEN="s3cret")
class NotifyViewTest(TempRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.url = reverse("css_pipeline:notify")
        self.queue = JobQueue()
        self.queue.enqueue(
            CSSType.CCSS, QueueEntry(url="https://example.com/blog/a/", url_tag="post")
        )

    def post(self, body, token="s3cret"):
        headers = {"HTTP_X_CSS_PIPELINE_TOKEN": token} if token else {}
        data = body if isinstance(body, str) else json.dumps(body)
        return self.client.post(self.url, data=data, content_type="application/json", **headers)

    def test_saves_result_and_retires_entry(self):
        response = self.post({"type": "ccss", "data": [{"queue_key": " post", "ccss": "h1{x:y}"}]})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"count": 1})
        self.assertEqual(ArtifactStore().read(CSSType.CCSS, "post", ""), "h1{x:y}")
        self.assertEqual(self.queue.load(CSSType.CCSS), {})

    def test_bearer_token(self):
        response = self.post(
            {"type": "ccss", "data": [{"queue_key": " post", "ccss": "h1{x:y}"}]},
            token="Bearer s3cret",
        )
        self.assertEqual(response.json(), {"count": 1})

    def test_unknown_keys_and_bad_items_are_skipped(self):
        response = self.post(
            {
                "type": "ccss",
                "data": [
                    {"queue_key": "gone", "ccss": "a{}"},
                    {"queue_key": " post"},
                    "junk",
                ],
            }
        )
        self.assertEqual(response.json(), {"count": 0})
        self.assertEqual(len(self.queue.load(CSSType.CCSS)), 1)

    def test_rejects_bad_token(self):
        self.assertEqual(self.post({"type": "ccss", "data": []}, token="nope").status_code, 401)
        self.assertEqual(self.post({"type": "ccss", "data": []}, token=None).status_code, 401)

    @override_settings(CSS_PIPELINE_NOTIFY_TOKEN="")
    def test_disabled_without_token(self):
        self.assertEqual(self.post({"type": "ccss", "data": []}, token="").status_code, 401)

    def test_malformed_bodies(self):
        self.assertEqual(self.post("{not json").status_code, 400)
        self.assertEqual(self.post({"type": "ccss"}).status_code, 400)
        self.assertEqual(self.post({"type": "bogus", "data": []}).status_code, 400)
        self.assertEqual(self.post({"type": "css", "data": []}).status_code, 400)

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)
