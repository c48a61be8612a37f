"""HTTP side of the remote generation service: allowance checks and submissions."""
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.core.cache import cache

from .conf import app_settings
from .constants import CSSType

logger = logging.getLogger(__name__)

QUOTA_ERRORS = ("out_of_quota", "lack_of_quota", "quota_exceeded")
DENIAL_CACHE_KEY = "css_pipeline:quota_denied:{service}"


def _auth_headers():
    if app_settings.SERVICE_API_KEY:
        return {"Authorization": f"Bearer {app_settings.SERVICE_API_KEY}"}
    return {}


def _service_url(path):
    return f"{app_settings.SERVICE_URL.rstrip('/')}/{path.lstrip('/')}"


def _quota_error(data):
    if not isinstance(data, dict):
        return None
    for key in ("_err", "error", "code"):
        value = data.get(key)
        if isinstance(value, str) and value in QUOTA_ERRORS:
            return value
    return None


class QuotaGate:
    """
    Answers whether the remote service still accepts work for a service type.

    A quota error seen on any response blocks the service locally for
    ``QUOTA_DENIAL_TTL`` seconds before the remote allowance is asked again.
    """

    def check(self, service):
        service = CSSType(service).value
        denied = cache.get(DENIAL_CACHE_KEY.format(service=service))
        if denied:
            return False, denied

        try:
            response = requests.get(
                _service_url(f"allowance/{service}"),
                headers=_auth_headers(),
                timeout=app_settings.QUOTA_TIMEOUT,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            return False, f"Allowance check failed: {e!s}"

        error = _quota_error(data)
        if error:
            self.record_denial(service, error)
            return False, error

        if response.status_code != 200 or not isinstance(data, dict):
            return False, f"Allowance check returned HTTP {response.status_code}"

        try:
            remaining = int(data.get("remaining", 0))
        except (TypeError, ValueError):
            remaining = 0

        if remaining <= 0:
            return False, "out_of_quota"
        return True, None

    def record_denial(self, service, error):
        cache.set(
            DENIAL_CACHE_KEY.format(service=CSSType(service).value),
            error,
            app_settings.QUOTA_DENIAL_TTL,
        )

    def reset(self, service):
        cache.delete(DENIAL_CACHE_KEY.format(service=CSSType(service).value))


@dataclass
class ServiceReply:
    data: Optional[dict] = None
    quota_error: Optional[str] = None


class GenerationClient:
    def __init__(self, quota=None):
        self.quota = quota or QuotaGate()

    def submit(self, css_type, payload):
        """
        POST a generation payload and return the decoded reply.

        ``data`` is None for anything that is not a JSON object.
        """
        css_type = CSSType(css_type)
        try:
            response = requests.post(
                _service_url(css_type.value),
                json=payload,
                headers=_auth_headers(),
                timeout=app_settings.SERVICE_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error(f"{css_type.tag_prefix} request failed: {e!s}")
            return ServiceReply()

        try:
            data = response.json()
        except ValueError:
            logger.error(f"{css_type.tag_prefix} HTTP {response.status_code}: {response.text[:200]}")
            return ServiceReply()

        error = _quota_error(data)
        if error or response.status_code == 429:
            error = error or "out_of_quota"
            self.quota.record_denial(css_type, error)
            return ServiceReply(quota_error=error)

        if response.status_code != 200 or not isinstance(data, dict):
            logger.error(f"{css_type.tag_prefix} unexpected reply HTTP {response.status_code}")
            return ServiceReply()

        return ServiceReply(data=data)
