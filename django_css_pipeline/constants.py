from enum import Enum

NOT_FOUND_TAG = "404"
SELF_FETCH_PARAM = "css_pipeline"
SELF_FETCH_VALUE = "before_optm"
QUEUE_FILENAME = ".litespeed_conf.dat"
UID_HEADER = "X-CSS-Pipeline-UID"


class CSSType(str, Enum):
    """Kinds of generated stylesheet kept in the artifact store."""

    CCSS = "ccss"
    UCSS = "ucss"
    COMBINED = "css"

    def __str__(self):
        return self.value

    @property
    def tag_prefix(self):
        return self.name

    @property
    def is_job_type(self):
        return self in JOB_TYPES

    @property
    def requires_url_tag(self):
        return self is CSSType.CCSS

    @property
    def uses_combined_css(self):
        """UCSS strips a previously combined stylesheet instead of per-tag CSS."""
        return self is CSSType.UCSS

    @property
    def sends_whitelist(self):
        return self is CSSType.UCSS


JOB_TYPES = (CSSType.CCSS, CSSType.UCSS)


def job_type(value):
    """Coerce ``value`` into one of the two queue-backed types."""
    css_type = CSSType(value)
    if not css_type.is_job_type:
        raise ValueError(f"{value!r} is not a generation job type")
    return css_type
