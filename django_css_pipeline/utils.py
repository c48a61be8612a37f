import hashlib
import logging
import re
import threading

import cssutils
from cssutils.serialize import CSSSerializer

logger = logging.getLogger(__name__)

WEBP_URL_RE = re.compile(
    r"""url\(\s*(['"]?)(?!data:)([^)'"]+?\.(?:jpe?g|png))(\?[^)'"]*)?\1\s*\)""",
    re.IGNORECASE,
)


class ParseProblems(logging.Handler):
    """Collects cssutils warnings and errors for the parse running in this thread."""

    def __init__(self):
        super().__init__(logging.WARNING)
        self.local = threading.local()

    def start(self):
        self.local.messages = []

    def stop(self):
        messages = getattr(self.local, "messages", None) or []
        self.local.messages = None
        return messages

    def emit(self, record):
        messages = getattr(self.local, "messages", None)
        if messages is not None:
            messages.append(record.getMessage())


parse_problems = ParseProblems()

# cssutils reports dropped rules only through its log
cssutils_logger = logging.getLogger(f"{__name__}.cssutils")
cssutils_logger.setLevel(logging.WARNING)
cssutils_logger.propagate = False
cssutils_logger.addHandler(parse_problems)
cssutils.log.setLog(cssutils_logger)

# Rules serialize through the module-level cssutils.ser, so it is swapped
# for the minifying serializer under a lock and then put back
minifier = CSSSerializer()
minifier.prefs.useMinified()
serializer_lock = threading.Lock()


def md5(value):
    """Stable hex digest used for queue keys, cache tags and file names."""
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def _no_fetch(url):
    # Never resolve @import while minifying
    return None


def _has_unknown_rules(rules):
    for rule in rules:
        if rule.type == rule.UNKNOWN_RULE:
            return True
        if rule.type == rule.MEDIA_RULE and _has_unknown_rules(rule.cssRules):
            return True
    return False


def _serialize(sheet):
    with serializer_lock:
        previous = cssutils.ser
        cssutils.setSerializer(minifier)
        try:
            return sheet.cssText.decode("utf-8")
        finally:
            cssutils.setSerializer(previous)


def minify_css(css):
    """
    Minify a CSS chunk with cssutils.

    cssutils silently drops syntax it does not know (``@layer``,
    ``@container``, ``:is()``, nesting). When it reports any problem, keeps
    an unknown @rule, or minifies real content down to nothing, the chunk is
    returned stripped but otherwise unchanged.
    """
    if not css or not css.strip():
        return ""

    parser = cssutils.CSSParser(
        raiseExceptions=False, validate=False, fetcher=_no_fetch
    )
    parse_problems.start()
    try:
        sheet = parser.parseString(css)
    except Exception:
        logger.warning("Could not parse CSS chunk, sending it unminified", exc_info=True)
        return css.strip()
    finally:
        problems = parse_problems.stop()

    if problems or _has_unknown_rules(sheet.cssRules):
        logger.debug(f"cssutils could not handle CSS chunk, sending it unminified: {problems[:3]}")
        return css.strip()

    minified = _serialize(sheet).strip()
    if not minified and not _is_only_comments(css):
        return css.strip()
    return minified


def _is_only_comments(css):
    return not re.sub(r"/\*.*?\*/", "", css, flags=re.DOTALL).strip()


def replace_background_webp(css):
    """Point jpg/png ``url()`` references at their ``.webp`` siblings."""

    def _swap(match):
        quote, path, query = match.group(1), match.group(2), match.group(3) or ""
        return f"url({quote}{path}.webp{query}{quote})"

    return WEBP_URL_RE.sub(_swap, css)


def is_error_comment(css):
    """True when stored CSS is only the service's failure comment."""
    css = (css or "").strip()
    return css.startswith("/*") and css.endswith("*/")


def str_hit_array(haystack, needles):
    """Return the first configured needle found inside ``haystack``."""
    for needle in needles or []:
        if needle and needle in haystack:
            return needle
    return None


def filter_whitelist(lines):
    """
    Prepare the UCSS selector whitelist for the remote service.

    Lines starting with ``//`` are notes for humans and are dropped; every
    other line (plain selectors, ``/regex/`` entries, quoted selectors) is
    passed through untouched.
    """
    whitelist = []
    for line in lines or []:
        line = line.strip()
        if not line or line.startswith("//"):
            continue
        whitelist.append(line)
    return whitelist
