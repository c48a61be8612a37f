"""
Generation pipeline for critical CSS (CCSS) and unused-CSS-removed (UCSS).

Page views enqueue variants that have no artifact yet; trigger ticks drain
the queue and dispatch entries to the remote service; completed CSS is
persisted by content digest and announced through the ``purge_tags``
signal.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from django.core.cache import cache
from django.utils.module_loading import import_string

from .client import QUOTA_ERRORS, GenerationClient, QuotaGate
from .conf import app_settings
from .constants import CSSType, job_type
from .extractor import extract
from .fetch import load_css_file, prepare_html
from .queue import EntryStatus, JobQueue, QueueEntry
from .signals import purge_tags, quota_exhausted
from .storage import ArtifactStore
from .summary import JSONSummaryStore
from .utils import filter_whitelist, is_error_comment, md5, str_hit_array
from .variant import resolve_ccss_tag, resolve_ucss_tag

logger = logging.getLogger(__name__)

LOCK_KEY = "css_pipeline:drain:{css_type}"


class Outcome(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    QUOTA_EXHAUSTED = "quota_exhausted"


class DrainStatus(Enum):
    DONE = "done"
    YIELDED = "yielded"
    EMPTY = "empty"
    IN_FLIGHT = "in_flight"
    LOCKED = "locked"
    QUOTA_EXHAUSTED = "quota_exhausted"


@dataclass
class DrainResult:
    status: DrainStatus
    processed: int = 0
    remaining: int = 0
    summary: Optional[object] = None

    @property
    def yielded(self):
        """The caller should re-invoke with ``continue_=True``."""
        return self.status is DrainStatus.YIELDED

    @property
    def done(self):
        return not self.yielded


@dataclass
class PageCSS:
    css: Optional[str] = None
    url: Optional[str] = None
    error: bool = False
    tags: List[str] = field(default_factory=list)


def cache_tag(css_type, queue_key):
    return f"{CSSType(css_type).tag_prefix}.{md5(queue_key)}"


def _pending_count(queue):
    return sum(1 for entry in queue.values() if not entry.is_requested)


class Pipeline:
    def __init__(
        self,
        store=None,
        queue=None,
        summary_store=None,
        client=None,
        quota=None,
        html_loader=None,
        css_loader=None,
        clock=None,
    ):
        self.store = store or ArtifactStore()
        self.queue = queue or JobQueue(store=self.store)
        self.summary_store = summary_store or JSONSummaryStore()
        self.quota = quota or QuotaGate()
        self.client = client or GenerationClient(quota=self.quota)
        self.html_loader = html_loader or prepare_html
        self.css_loader = css_loader or load_css_file
        self.clock = clock or time.time

    # Page views

    def enqueue(self, css_type, view, url_tag):
        """Queue a variant for generation. Returns the cache tag, or None when full."""
        css_type = job_type(css_type)
        entry = QueueEntry(
            url=view.url,
            user_agent=view.user_agent,
            is_mobile=view.is_mobile,
            is_webp=view.is_webp,
            uid=view.uid,
            vary=view.vary,
            url_tag=url_tag,
        )
        if not self.queue.enqueue(css_type, entry):
            return None
        return cache_tag(css_type, entry.queue_key)

    def load_ccss(self, view):
        url_tag = resolve_ccss_tag(view.url, view.page_meta)
        css = self.store.read(CSSType.CCSS, url_tag, view.vary)
        if css is not None:
            logger.debug(f"Existing CCSS for {url_tag}")
            return PageCSS(css=css, error=is_error_comment(css))

        tag = self.enqueue(CSSType.CCSS, view, url_tag)
        return PageCSS(tags=[tag] if tag else [])

    def load_ucss(self, view, dry_run=False):
        hit = str_hit_array(view.url, app_settings.UCSS_EXCLUDE_URI)
        if hit:
            logger.debug(f"UCSS bypassed due to UCSS URI exclude setting: {hit}")
            return PageCSS()

        url_tag = resolve_ucss_tag(view.url, view.page_meta)
        filename = self.store.lookup(CSSType.UCSS, url_tag, view.vary)
        if self.store.exists(CSSType.UCSS, filename):
            css = self.store.read(CSSType.UCSS, url_tag, view.vary)
            if is_error_comment(css):
                logger.debug(f"Existing UCSS is error only: {css}")
                return PageCSS(error=True)
            return PageCSS(url=self.store.url_for(CSSType.UCSS, filename))

        if dry_run:
            return PageCSS()

        tag = self.enqueue(CSSType.UCSS, view, url_tag)
        return PageCSS(tags=[tag] if tag else [])

    # Trigger ticks

    def drain(self, css_type, continue_=False):
        """
        Run one drain pass over the queue of ``css_type``.

        Holds a per-type cache lock for the duration of the pass so that
        overlapping triggers cannot dispatch the same entry twice.
        """
        css_type = job_type(css_type)
        lock_key = LOCK_KEY.format(css_type=css_type.value)
        if not cache.add(lock_key, int(self.clock()), app_settings.LOCK_TIMEOUT):
            logger.debug(f"[{css_type.tag_prefix}] Another drain pass is running")
            return DrainResult(DrainStatus.LOCKED)

        try:
            return self._drain(css_type, continue_)
        finally:
            cache.delete(lock_key)

    def _drain(self, css_type, continue_):
        tag = css_type.tag_prefix
        queue = self.queue.load(css_type)
        summary = self.summary_store.load()

        if not queue:
            return DrainResult(DrainStatus.EMPTY, summary=summary)

        now = self.clock()
        if (
            not continue_
            and not app_settings.DEBUG
            and summary.in_flight(css_type, now, app_settings.DEDUP_WINDOW)
        ):
            logger.debug(f"[{tag}] Last request not done")
            return DrainResult(
                DrainStatus.IN_FLIGHT, remaining=_pending_count(queue), summary=summary
            )

        started = now
        processed = 0
        for queue_key, entry in list(queue.items()):
            if entry.is_requested:
                continue

            logger.debug(
                f"[{tag}] cron job [tag] {queue_key} [url] {entry.url}"
                f"{' (mobile)' if entry.is_mobile else ''} [UA] {entry.user_agent}"
            )

            if not entry.is_valid(css_type):
                del queue[queue_key]
                self.queue.save(css_type, queue)
                logger.warning(f"[{tag}] Dropped malformed queue entry {queue_key!r}")
                continue

            if continue_ and processed and self.clock() - started > app_settings.TICK_BUDGET:
                return DrainResult(
                    DrainStatus.YIELDED, processed, _pending_count(queue), summary
                )

            processed += 1
            outcome = self.dispatch(css_type, queue_key, entry, summary)

            if outcome is Outcome.QUOTA_EXHAUSTED:
                return DrainResult(
                    DrainStatus.QUOTA_EXHAUSTED, processed, _pending_count(queue), summary
                )

            if outcome is Outcome.REJECTED:
                del queue[queue_key]
            else:
                entry.status = EntryStatus.REQUESTED
            self.queue.save(css_type, queue)

            # Periodic ticks only ever send the first entry
            if not continue_:
                break

            if processed > app_settings.BATCH_LIMIT:
                logger.info(f"[{tag}] Yielding with {_pending_count(queue)} entries left")
                return DrainResult(
                    DrainStatus.YIELDED, processed, _pending_count(queue), summary
                )

        return DrainResult(DrainStatus.DONE, processed, _pending_count(queue), summary)

    def dispatch(self, css_type, queue_key, entry, summary):
        """Send one queue entry to the generation service."""
        css_type = job_type(css_type)
        tag = css_type.tag_prefix

        allowed, error = self.quota.check(css_type)
        if not allowed:
            self._quota_denied(css_type, error)
            return Outcome.QUOTA_EXHAUSTED

        summary.start_request(css_type, self.clock())
        self.summary_store.save(summary)

        html = self.html_loader(entry.url, entry.user_agent, entry.uid)
        if not html:
            logger.info(f"[{tag}] No HTML fetched for {entry.url}")
            return Outcome.REJECTED

        if css_type.uses_combined_css:
            _, html = extract(html, entry.is_webp, dryrun=True)
            css = self.store.read(CSSType.COMBINED, entry.url_tag, entry.vary)
        else:
            css, html = extract(
                html, entry.is_webp, base_url=entry.url, fetch_css=self.css_loader
            )

        if not css:
            logger.info(f"[{tag}] No CSS found for {entry.url}")
            return Outcome.REJECTED

        payload = {
            "url": entry.url,
            "queue_key": queue_key,
            "user_agent": entry.user_agent,
            "is_mobile": 1 if entry.is_mobile else 0,
            "is_webp": 1 if entry.is_webp else 0,
            "html": html,
            "css": css,
        }
        if css_type.sends_whitelist:
            payload["whitelist"] = filter_whitelist(app_settings.UCSS_WHITELIST)

        logger.info(f"[{tag}] Generating {entry.url} [queue key] {queue_key}")
        reply = self.client.submit(css_type, payload)

        if reply.quota_error:
            self._quota_denied(css_type, reply.quota_error)
            return Outcome.QUOTA_EXHAUSTED

        data = reply.data
        if data is None:
            return Outcome.REJECTED

        # Older service versions answer synchronously with the content
        if not data.get("status"):
            content = data.get(css_type.value)
            if content:
                self.persist(css_type, content, queue_key, entry)
            return Outcome.REJECTED

        if data["status"] != "queued":
            logger.warning(f"[{tag}] Unknown status {data['status']!r} for {queue_key}")
            return Outcome.REJECTED

        summary.finish_request(css_type, self.clock())
        self.summary_store.save(summary)
        return Outcome.ACCEPTED

    def _quota_denied(self, css_type, error):
        # Transport failures also stop the pass but are not a quota verdict
        if error not in QUOTA_ERRORS:
            logger.warning(f"[{css_type.tag_prefix}] Allowance unavailable: {error}")
            return
        logger.error(f"[{css_type.tag_prefix}] No credit: {error}")
        quota_exhausted.send(sender=self.__class__, service=css_type.value, error=error)

    # Completion

    def persist(self, css_type, css, queue_key, entry=None):
        """
        Store generated CSS for the variant behind ``queue_key``.

        Returns the digest filename, or None when the key is unknown.
        """
        css_type = CSSType(css_type)
        if entry is None:
            entry = self.queue.load(css_type).get(queue_key)
        if entry is None:
            logger.warning(f"[{css_type.tag_prefix}] No queue entry for {queue_key!r}, result dropped")
            return None

        for path in app_settings.CONTENT_FILTERS or []:
            css = import_string(path)(css_type.value, css, queue_key)

        if is_error_comment(css):
            # The failure comment is stored too so the page stops re-queueing
            logger.warning(f"Empty {css_type.value} [content] {css}")

        filename = self.store.write(css_type, entry.url_tag, entry.vary, css)
        purge_tags.send(sender=self.__class__, tags=[cache_tag(css_type, queue_key)])
        return filename

    def complete(self, css_type, queue_key, css):
        """Handle an asynchronous result: persist it and retire the queue entry."""
        css_type = job_type(css_type)
        queue = self.queue.load(css_type)
        entry = queue.get(queue_key)
        if entry is None:
            logger.warning(f"[{css_type.tag_prefix}] Completion for unknown key {queue_key!r}")
            return None

        filename = self.persist(css_type, css, queue_key, entry)
        self.queue.remove(css_type, queue_key)
        return filename

    def clear_queue(self, css_type):
        return self.queue.clear(job_type(css_type))


def get_pipeline():
    return Pipeline()


def cron_ccss(continue_=False, pipeline=None):
    return (pipeline or get_pipeline()).drain(CSSType.CCSS, continue_)


def cron_ucss(continue_=False, pipeline=None):
    return (pipeline or get_pipeline()).drain(CSSType.UCSS, continue_)
