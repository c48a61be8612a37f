from django.dispatch import Signal

# Sent with ``tags``: cache tags whose pages must be purged, e.g. "CCSS.<md5>"
purge_tags = Signal()

# Sent with ``service`` and ``error`` when the remote allowance is used up
quota_exhausted = Signal()
