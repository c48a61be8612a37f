from django.utils.deprecation import MiddlewareMixin

from .conf import app_settings
from .constants import SELF_FETCH_PARAM
from .pipeline import get_pipeline
from .variant import PageView


class CSSPipelineMiddleware(MiddlewareMixin):
    """
    Middleware to look up generated CSS for the current page variant.
    Found CSS is attached to `request.critical_css` / `request.unused_css_url`.
    Missing variants are queued for the next drain pass, and the cache tags
    for those pages are added to the response.
    """

    def process_request(self, request):
        request.critical_css = None
        request.critical_css_error = False
        request.unused_css_url = None
        request.css_pipeline_tags = []

        if request.method != "GET":
            return

        # Skip admin, static, and API endpoints
        if any(request.path.startswith(prefix) for prefix in app_settings.EXCLUDE_PATHS or []):
            return

        # The pipeline's own fetch wants the page without generated CSS
        if SELF_FETCH_PARAM in request.GET:
            return

        pipeline = get_pipeline()
        view = PageView.from_request(request)

        if app_settings.CCSS_ENABLED:
            ccss = pipeline.load_ccss(view)
            request.critical_css = ccss.css
            request.critical_css_error = ccss.error
            request.css_pipeline_tags.extend(ccss.tags)

        if app_settings.UCSS_ENABLED:
            ucss = pipeline.load_ucss(view)
            request.unused_css_url = ucss.url
            request.css_pipeline_tags.extend(ucss.tags)

    def process_response(self, request, response):
        tags = getattr(request, "css_pipeline_tags", None)
        header = app_settings.CACHE_TAG_HEADER
        if tags and header:
            existing = response.get(header)
            response[header] = ",".join(([existing] if existing else []) + tags)
        return response
