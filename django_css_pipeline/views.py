import hmac
import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .conf import app_settings
from .constants import JOB_TYPES, CSSType
from .pipeline import get_pipeline

logger = logging.getLogger(__name__)

TOKEN_HEADER = "HTTP_X_CSS_PIPELINE_TOKEN"


def _authorized(request):
    expected = app_settings.NOTIFY_TOKEN
    if not expected:
        return False
    token = request.META.get(TOKEN_HEADER, "")
    token = token.encode("utf-8")
    return any(
        hmac.compare_digest(token, candidate.encode("utf-8"))
        for candidate in (expected, f"Bearer {expected}")
    )


@csrf_exempt
@require_POST
def notify(request):
    """
    Receive finished CSS from the generation service.

    Body: ``{"type": "ccss", "data": [{"queue_key": "...", "ccss": "..."}]}``
    """
    if not _authorized(request):
        return JsonResponse({"error": "Invalid token"}, status=401)

    try:
        body = json.loads(request.body or b"{}")
        css_type = CSSType(body.get("type"))
    except (ValueError, AttributeError):
        return JsonResponse({"error": "Malformed request"}, status=400)

    if css_type not in JOB_TYPES:
        return JsonResponse({"error": "Unsupported type"}, status=400)

    items = body.get("data")
    if not isinstance(items, list):
        return JsonResponse({"error": "Malformed request"}, status=400)

    pipeline = get_pipeline()
    saved = 0
    for item in items:
        if not isinstance(item, dict):
            continue
        queue_key = item.get("queue_key")
        css = item.get(css_type.value)
        if not queue_key or not isinstance(css, str):
            logger.warning(f"Skipping malformed {css_type.value} notification item")
            continue
        if pipeline.complete(css_type, queue_key, css):
            saved += 1

    return JsonResponse({"count": saved})
