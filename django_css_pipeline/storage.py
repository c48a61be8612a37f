"""
On-disk artifacts addressed by content digest.

Files live under ``{root}/{type}/[{tenant}/]{digest}.css``; the variant to
file mapping is kept in the ``UrlFile`` table.
"""
import logging
import os
import tempfile

from django.conf import settings

from .conf import app_settings
from .constants import CSSType
from .models import UrlFile
from .utils import md5

logger = logging.getLogger(__name__)


DEFAULT_FILE_MODE = 0o644


def write_file_atomic(path, content):
    """
    Write ``content`` to ``path`` through a temp file and rename.

    The file gets ``FILE_UPLOAD_PERMISSIONS``, or 0o644 when that is unset.
    """
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_path, getattr(settings, "FILE_UPLOAD_PERMISSIONS", None) or DEFAULT_FILE_MODE)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def read_file(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


class ArtifactStore:
    def __init__(self, root=None, tenant_id=None):
        self.root = root or app_settings.static_root
        self.tenant_id = tenant_id if tenant_id is not None else app_settings.TENANT_ID

    def type_dir(self, css_type):
        parts = [self.root, CSSType(css_type).value]
        if self.tenant_id:
            parts.append(str(self.tenant_id))
        return os.path.join(*parts)

    def path_for(self, css_type, filename):
        return os.path.join(self.type_dir(css_type), f"{filename}.css")

    def url_for(self, css_type, filename):
        parts = [CSSType(css_type).value]
        if self.tenant_id:
            parts.append(str(self.tenant_id))
        parts.append(f"{filename}.css")
        return app_settings.static_url.rstrip("/") + "/" + "/".join(parts)

    def lookup(self, css_type, url_tag, vary):
        """Return the stored filename (digest) for a variant, or ``None``."""
        return (
            UrlFile.objects.filter(
                css_type=CSSType(css_type).value, url_tag=url_tag, vary=vary or ""
            )
            .values_list("filename", flat=True)
            .first()
        )

    def exists(self, css_type, filename):
        return bool(filename) and os.path.exists(self.path_for(css_type, filename))

    def read(self, css_type, url_tag, vary):
        """CSS content for a variant, or ``None`` when missing on either side."""
        filename = self.lookup(css_type, url_tag, vary)
        if not self.exists(css_type, filename):
            return None
        return read_file(self.path_for(css_type, filename))

    def write(self, css_type, url_tag, vary, css):
        """
        Store ``css`` and point the variant at it.

        Identical content always lands in the same file, so an existing file
        is left alone. Returns the digest used as filename.
        """
        digest = md5(css)
        path = self.path_for(css_type, digest)
        if not os.path.exists(path):
            write_file_atomic(path, css)

        UrlFile.objects.update_or_create(
            css_type=CSSType(css_type).value,
            url_tag=url_tag,
            vary=vary or "",
            defaults={"filename": digest},
        )
        logger.debug(f"Save URL to file [file] {path} [vary] {vary}")
        return digest
