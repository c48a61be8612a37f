"""
Cache-granularity keys for generated CSS.

A page view is described by its URL, a ``PageMeta`` and a vary string.
``url_tag`` decides how many pages share one stylesheet; the queue key
combines it with the vary fingerprint.
"""
import logging
from dataclasses import dataclass

from django.urls import Resolver404
from django.urls import resolve as resolve_path

from .conf import app_settings
from .constants import NOT_FOUND_TAG, CSSType
from .utils import md5, str_hit_array

logger = logging.getLogger(__name__)

VARY_HASH_THRESHOLD = 32
MOBILE_UA_MARKERS = ("Mobi", "Android", "iPhone", "iPad")


@dataclass(frozen=True)
class PageMeta:
    page_type: str = ""
    is_not_found: bool = False


def resolve_ccss_tag(url, page_meta):
    if page_meta.is_not_found:
        return NOT_FOUND_TAG

    if app_settings.CCSS_PER_URL:
        return url

    hit = str_hit_array(url, app_settings.CCSS_SEP_URI)
    if hit:
        logger.debug(f"Separate CCSS due to separate URI setting: {hit}")
        return url

    if page_meta.page_type in (app_settings.CCSS_SEP_PAGETYPE or []):
        logger.debug(f"Separate CCSS due to page type setting: {page_meta.page_type}")
        return url

    return page_meta.page_type


def resolve_ucss_tag(url, page_meta):
    if page_meta.is_not_found:
        return NOT_FOUND_TAG

    if app_settings.UCSS_PER_PAGETYPE:
        return page_meta.page_type

    return url


def resolve(url, page_meta, css_type=CSSType.CCSS):
    """Pick the ``url_tag`` for ``url`` under the given type's policy."""
    if CSSType(css_type) is CSSType.UCSS:
        return resolve_ucss_tag(url, page_meta)
    return resolve_ccss_tag(url, page_meta)


def derive_queue_key(vary, url_tag):
    vary = vary or ""
    prefix = md5(vary) if len(vary) > VARY_HASH_THRESHOLD else vary
    return f"{prefix} {url_tag}"


def page_meta_for_path(path):
    """Page type is the resolved URL name; an unresolvable path is a 404."""
    try:
        match = resolve_path(path)
    except Resolver404:
        return PageMeta(is_not_found=True)
    return PageMeta(page_type=match.view_name or match.func.__name__)


def is_mobile(user_agent):
    if not app_settings.SEPARATE_MOBILE:
        return False
    return any(marker in (user_agent or "") for marker in MOBILE_UA_MARKERS)


def supports_webp(request):
    return "image/webp" in request.META.get("HTTP_ACCEPT", "")


def build_vary(request):
    """
    Fingerprint of request properties that change which CSS is correct.

    Configured cookies contribute ``name=value`` pairs; device and image
    format discriminators are appended as flags.
    """
    parts = []
    for name in sorted(app_settings.VARY_COOKIES or []):
        value = request.COOKIES.get(name)
        if value:
            parts.append(f"{name}={value}")

    if is_mobile(request.META.get("HTTP_USER_AGENT", "")):
        parts.append("mobile")
    if app_settings.WEBP_REPLACE and supports_webp(request):
        parts.append("webp")

    return ";".join(parts)


@dataclass(frozen=True)
class PageView:
    """What the pipeline needs to know about one page request."""

    url: str
    page_meta: PageMeta
    vary: str = ""
    user_agent: str = ""
    is_mobile: bool = False
    is_webp: bool = False
    uid: int = 0

    @classmethod
    def from_request(cls, request):
        user = getattr(request, "user", None)
        uid = user.pk if user is not None and user.is_authenticated else 0
        user_agent = request.META.get("HTTP_USER_AGENT", "")
        return cls(
            url=request.build_absolute_uri(request.path),
            page_meta=page_meta_for_path(request.path_info),
            vary=build_vary(request),
            user_agent=user_agent,
            is_mobile=is_mobile(user_agent),
            is_webp=supports_webp(request),
            uid=uid or 0,
        )
