"""
Pull stylesheet content out of rendered HTML.

Only ``<link>`` and ``<style>`` nodes are considered. Each skip rule is a
separate predicate so it can be tested on its own.
"""
import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .conf import app_settings
from .utils import minify_css, replace_background_webp

logger = logging.getLogger(__name__)

INLINE_SOURCE = "__INLINE__"

TAG_END_RE = re.compile(r"""(?:[^>"']|"[^"]*"|'[^']*')*>""")
STYLE_CLOSE_RE = re.compile(r"</style\s*>", re.IGNORECASE)


def rel_values(node):
    rel = node.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [value.lower() for value in rel]


def is_stylesheet_link(node):
    rel = rel_values(node)
    if "stylesheet" in rel:
        return True
    return "preload" in rel and (node.get("as") or "").lower() == "style"


def is_print_media(node):
    return "print" in (node.get("media") or "").lower()


def is_excluded_font(href):
    return any(host in href for host in app_settings.EXCLUDED_FONT_HOSTS or [])


def wrap_media(css, media):
    if media and media != "all":
        return f"@media {media}{{{css}}}\n"
    return f"{css}\n"


def render_chunk(content, source, media=None, is_webp=False):
    css = minify_css(content)
    if is_webp and app_settings.WEBP_REPLACE:
        css = replace_background_webp(css)
    return f"/* {source} */" + wrap_media(css, media)


def _line_offsets(html):
    return [0] + [match.end() for match in re.finditer("\n", html)]


def node_span(html, offsets, node):
    """``(start, end)`` of the node's markup in ``html``, or None if unknown."""
    if node.sourceline is None or node.sourceline > len(offsets):
        return None
    start = offsets[node.sourceline - 1] + node.sourcepos
    if html[start:start + 1] != "<":
        return None

    match = TAG_END_RE.match(html, start + 1)
    if not match:
        return None
    end = match.end()

    if node.name == "style":
        close = STYLE_CLOSE_RE.search(html, end)
        if not close:
            return None
        end = close.end()
    return start, end


def cut_spans(html, spans):
    out = []
    pos = 0
    for start, end in sorted(spans):
        out.append(html[pos:start])
        pos = end
    out.append(html[pos:])
    return "".join(out)


def extract(html, is_webp=False, dryrun=False, base_url=None, fetch_css=None):
    """
    Return ``(css, residual_html)`` for the given page.

    The residual is the fetched HTML with the matched nodes cut out, byte
    for byte otherwise. Only when a node cannot be located in the source is
    the parsed tree re-serialized instead.

    In dry-run mode nothing is fetched and no CSS is returned; the matching
    nodes are only stripped from the HTML.
    """
    if fetch_css is None:
        from .fetch import load_css_file as fetch_css

    html = html or ""
    soup = BeautifulSoup(html, "html.parser")
    offsets = _line_offsets(html)
    chunks = []
    spans = []
    exact = True

    def strip(node):
        nonlocal exact
        span = node_span(html, offsets, node)
        if span is None:
            exact = False
        else:
            spans.append(span)
        node.decompose()

    for node in soup.find_all(["link", "style"]):
        media = node.get("media")

        if node.name == "link":
            if not is_stylesheet_link(node) or is_print_media(node):
                continue

            href = node.get("href")
            if not href:
                continue

            if is_excluded_font(href):
                strip(node)
                continue

            source = href
            if dryrun:
                content = None
            else:
                content = fetch_css(urljoin(base_url, href) if base_url else href)
                if not content:
                    logger.debug(f"Could not load stylesheet {href}, leaving it in place")
                    continue
        else:
            if is_print_media(node):
                continue

            content = node.get_text()
            if not content.strip():
                continue

            source = INLINE_SOURCE
            logger.debug(f"Load inline CSS {content[:100]}...")

        if not dryrun:
            chunks.append(render_chunk(content, source, media, is_webp))

        strip(node)

    residual = cut_spans(html, spans) if exact else str(soup)
    return "".join(chunks), residual
