import os

from django.conf import settings

DEFAULTS = {
    "STATIC_ROOT": None,
    "STATIC_URL": None,
    "TENANT_ID": None,
    "SERVICE_URL": "http://localhost:3000",
    "SERVICE_API_KEY": "",
    "SERVICE_TIMEOUT": 30,
    "QUOTA_TIMEOUT": 10,
    "QUOTA_DENIAL_TTL": 3600,
    "QUEUE_LIMIT": 500,
    "DEDUP_WINDOW": 300,
    "BATCH_LIMIT": 3,
    "TICK_BUDGET": 120,
    "LOCK_TIMEOUT": 180,
    "DEBUG": False,
    "CCSS_ENABLED": True,
    "UCSS_ENABLED": False,
    "CCSS_PER_URL": False,
    "CCSS_SEP_URI": [],
    "CCSS_SEP_PAGETYPE": [],
    "CCSS_DEFAULT_CSS": "",
    "UCSS_PER_PAGETYPE": False,
    "UCSS_EXCLUDE_URI": [],
    "UCSS_WHITELIST": [],
    "WEBP_REPLACE": False,
    "SEPARATE_MOBILE": True,
    "VARY_COOKIES": [],
    "EXCLUDE_PATHS": ["/admin", "/static", "/api"],
    "EXCLUDED_FONT_HOSTS": ["fonts.googleapis.com"],
    "HTML_FETCHER": "django_css_pipeline.fetch.fetch_rendered_html",
    "HTML_MINIFIER": None,
    "CONTENT_FILTERS": [],
    "CACHE_TAG_HEADER": "X-Cache-Tags",
    "NOTIFY_TOKEN": "",
}


class AppSettings:
    """
    Read CSS_PIPELINE_* options from Django settings.

    Values are looked up on every access so that ``override_settings``
    takes effect in tests.
    """

    prefix = "CSS_PIPELINE_"

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid css pipeline setting: {name}")
        return getattr(settings, self.prefix + name, DEFAULTS[name])

    @property
    def static_root(self):
        root = getattr(settings, self.prefix + "STATIC_ROOT", None)
        if root:
            return str(root)
        base = getattr(settings, "MEDIA_ROOT", "") or os.getcwd()
        return os.path.join(str(base), "css_pipeline")

    @property
    def static_url(self):
        url = getattr(settings, self.prefix + "STATIC_URL", None)
        if url:
            return url
        media_url = getattr(settings, "MEDIA_URL", "") or "/media/"
        return media_url.rstrip("/") + "/css_pipeline/"


app_settings = AppSettings()
