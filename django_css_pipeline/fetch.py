import logging
import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import requests
from django.utils.module_loading import import_string

from .conf import app_settings
from .constants import SELF_FETCH_PARAM, SELF_FETCH_VALUE, UID_HEADER

logger = logging.getLogger(__name__)

NOSCRIPT_RE = re.compile(r"<noscript>.*?</noscript>", re.IGNORECASE | re.DOTALL)

FETCH_TIMEOUT = 30


def add_query_arg(url, key, value):
    parts = urlparse(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query = [(k, v) for k, v in query if k != key] + [(key, value)]
    return urlunparse(parts._replace(query=urlencode(query)))


def fetch_rendered_html(url, user_agent, uid=0):
    """
    Fetch the page the way a visitor with ``user_agent`` would see it.

    The marker query argument tells the middleware to serve the page
    without injected CSS and without enqueueing it again.
    """
    headers = {"User-Agent": user_agent or ""}
    if uid:
        headers[UID_HEADER] = str(uid)

    try:
        response = requests.get(
            add_query_arg(url, SELF_FETCH_PARAM, SELF_FETCH_VALUE),
            headers=headers,
            timeout=FETCH_TIMEOUT,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Failed to fetch HTML for {url}: {e!s}")
        return ""

    return response.text


def load_css_file(url):
    """Return the body of an external stylesheet, or ``None``."""
    try:
        response = requests.get(url, timeout=FETCH_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.debug(f"Failed to load stylesheet {url}: {e!s}")
        return None

    return response.text


def prepare_html(url, user_agent, uid=0):
    """Fetched HTML after the site's minifier and with ``<noscript>`` dropped."""
    fetcher = import_string(app_settings.HTML_FETCHER)
    html = fetcher(url, user_agent, uid)
    if not html:
        return ""

    if app_settings.HTML_MINIFIER:
        html = import_string(app_settings.HTML_MINIFIER)(html)

    return NOSCRIPT_RE.sub("", html)
