from django.test import TestCase, override_settings

from django_css_pipeline.constants import CSSType
from django_css_pipeline.pipeline import cache_tag
from django_css_pipeline.queue import JobQueue
from django_css_pipeline.storage import ArtifactStore

from .base import TempRootMixin

MOBILE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148"


class MiddlewareTest(TempRootMixin, TestCase):
    def get(self, path, **extra):
        extra.setdefault("HTTP_HOST", "example.com")
        return self.client.get(path, **extra)

    def test_miss_queues_page_type_and_tags_response(self):
        response = self.get("/blog/hello/")

        self.assertEqual(response.status_code, 200)
        self.assertNotIn(b"<style", response.content)
        self.assertEqual(response["X-Cache-Tags"], cache_tag(CSSType.CCSS, " post"))

        entry = JobQueue().load(CSSType.CCSS)[" post"]
        self.assertEqual(entry.url, "http://example.com/blog/hello/")
        self.assertFalse(entry.is_mobile)

    def test_pages_of_one_type_share_a_slot(self):
        self.get("/blog/one/")
        self.get("/blog/two/")
        self.get("/shop/hat/")
        self.assertEqual(list(JobQueue().load(CSSType.CCSS)), [" post", " product"])

    def test_mobile_variant(self):
        self.get("/blog/hello/", HTTP_USER_AGENT=MOBILE_UA)
        entry = JobQueue().load(CSSType.CCSS)["mobile post"]
        self.assertTrue(entry.is_mobile)
        self.assertEqual(entry.user_agent, MOBILE_UA)

    def test_hit_injects_critical_css(self):
        ArtifactStore().write(CSSType.CCSS, "post", "", "h1{color:red}")

        response = self.get("/blog/hello/")

        self.assertContains(response, '<style id="css-pipeline-ccss">h1{color:red}</style>')
        self.assertNotIn("X-Cache-Tags", response)
        self.assertEqual(JobQueue().load(CSSType.CCSS), {})

    @override_settings(CSS_PIPELINE_CCSS_DEFAULT_CSS="body{opacity:1}")
    def test_default_css_is_appended(self):
        ArtifactStore().write(CSSType.CCSS, "home", "", "h1{color:red}")
        self.assertContains(self.get("/"), "h1{color:red}body{opacity:1}</style>")

    def test_error_artifact_is_flagged(self):
        ArtifactStore().write(CSSType.CCSS, "post", "", "/* no css */")
        self.assertContains(self.get("/blog/hello/"), 'data-error="failed to generate"')

    def test_unresolved_path_uses_not_found_slot(self):
        self.get("/missing/page/")
        self.assertEqual(list(JobQueue().load(CSSType.CCSS)), [" 404"])

    def test_self_fetch_is_left_alone(self):
        response = self.get("/blog/hello/?css_pipeline=before_optm")
        self.assertNotIn("X-Cache-Tags", response)
        self.assertEqual(JobQueue().load(CSSType.CCSS), {})

    def test_post_is_left_alone(self):
        self.client.post("/blog/hello/", HTTP_HOST="example.com")
        self.assertEqual(JobQueue().load(CSSType.CCSS), {})

    @override_settings(CSS_PIPELINE_EXCLUDE_PATHS=["/api/"])
    def test_excluded_paths(self):
        self.get("/api/items/")
        self.assertEqual(JobQueue().load(CSSType.CCSS), {})

    @override_settings(CSS_PIPELINE_CCSS_ENABLED=False, CSS_PIPELINE_UCSS_ENABLED=True)
    def test_unused_css_link(self):
        url = "http://example.com/blog/hello/"
        digest = ArtifactStore().write(CSSType.UCSS, url, "", "p{margin:0}")

        response = self.get("/blog/hello/")

        self.assertContains(response, f"ucss/{digest}.css")
        self.assertContains(response, 'id="css-pipeline-ucss"')

    @override_settings(CSS_PIPELINE_UCSS_ENABLED=True)
    def test_both_types_are_tagged(self):
        response = self.get("/blog/hello/")
        tags = response["X-Cache-Tags"].split(",")
        self.assertEqual(
            tags,
            [
                cache_tag(CSSType.CCSS, " post"),
                cache_tag(CSSType.UCSS, " http://example.com/blog/hello/"),
            ],
        )

    @override_settings(CSS_PIPELINE_CACHE_TAG_HEADER="")
    def test_tag_header_can_be_disabled(self):
        self.assertNotIn("X-Cache-Tags", self.get("/blog/hello/"))
