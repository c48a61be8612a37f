import logging

from celery import shared_task

from . import pipeline

logger = logging.getLogger(__name__)


def _report(name, result, task):
    logger.info(
        "%s drain %s: processed=%s remaining=%s",
        name, result.status.value, result.processed, result.remaining,
    )
    # A yielded pass is picked up again by a fresh task instead of blocking this worker
    if result.yielded:
        task.delay(continue_=True)
    return result.status.value


@shared_task
def cron_ccss(continue_=False):
    """
    Periodic (or "drain now") tick for the critical CSS queue.
    """
    return _report("CCSS", pipeline.cron_ccss(continue_), cron_ccss)


@shared_task
def cron_ucss(continue_=False):
    """
    Periodic (or "drain now") tick for the unused CSS queue.
    """
    return _report("UCSS", pipeline.cron_ucss(continue_), cron_ucss)
