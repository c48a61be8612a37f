import json
import logging
import os
from dataclasses import dataclass, field

from .conf import app_settings
from .constants import JOB_TYPES, CSSType
from .storage import read_file, write_file_atomic

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = ".summary.json"


@dataclass
class TypeSummary:
    curr_request: int = 0
    last_request: int = 0
    last_spent: int = 0


@dataclass
class PipelineSummary:
    """Request timing per job type. Persisted after every change."""

    types: dict = field(default_factory=lambda: {t.value: TypeSummary() for t in JOB_TYPES})

    def __getitem__(self, css_type):
        key = CSSType(css_type).value
        if key not in self.types:
            self.types[key] = TypeSummary()
        return self.types[key]

    def start_request(self, css_type, now):
        self[css_type].curr_request = int(now)

    def finish_request(self, css_type, now):
        """Shift the in-flight marker into last_request/last_spent."""
        summary = self[css_type]
        summary.last_spent = max(0, int(now) - summary.curr_request)
        summary.last_request = summary.curr_request
        summary.curr_request = 0

    def in_flight(self, css_type, now, window):
        curr = self[css_type].curr_request
        return bool(curr) and now - curr < window

    def to_dict(self):
        data = {}
        for key, summary in self.types.items():
            data[f"curr_request_{key}"] = summary.curr_request
            data[f"last_request_{key}"] = summary.last_request
            data[f"last_spent_{key}"] = summary.last_spent
        return data

    @classmethod
    def from_dict(cls, data):
        summary = cls()
        for css_type in JOB_TYPES:
            key = css_type.value
            summary.types[key] = TypeSummary(
                curr_request=int(data.get(f"curr_request_{key}") or 0),
                last_request=int(data.get(f"last_request_{key}") or 0),
                last_spent=int(data.get(f"last_spent_{key}") or 0),
            )
        return summary


class JSONSummaryStore:
    """Keeps the pipeline summary in a JSON file under the static root."""

    def __init__(self, path=None):
        self.path = path or os.path.join(app_settings.static_root, SUMMARY_FILENAME)

    def load(self):
        if not os.path.exists(self.path):
            return PipelineSummary()
        try:
            data = json.loads(read_file(self.path) or "{}")
        except ValueError:
            logger.warning(f"Corrupt summary file {self.path}, starting fresh")
            return PipelineSummary()
        if not isinstance(data, dict):
            return PipelineSummary()
        return PipelineSummary.from_dict(data)

    def save(self, summary):
        write_file_atomic(self.path, json.dumps(summary.to_dict()))


class MemorySummaryStore:
    def __init__(self, summary=None):
        self.summary = summary or PipelineSummary()

    def load(self):
        return self.summary

    def save(self, summary):
        self.summary = summary
