"""
File storage buckets and attachment helpers.

Binary objects live in named buckets under UPLOAD_FOLDER/<bucket>/<path>.
Public URLs are derived from bucket + path and served by the /storage route.
"""

import logging
import os
import random
import string
import time
from typing import Any, Dict, List, Optional

from werkzeug.utils import secure_filename

from config import UPLOAD_FOLDER, PUBLIC_STORAGE_URL, ALLOWED_EXTENSIONS

logger = logging.getLogger(__name__)

SOURCE_PLATFORM = "platform"
SOURCE_COMPONENT = "component"
SOURCE_INSPECTION = "inspection"


class StorageError(Exception):
    """Raised when a bucket operation fails."""


def file_extension(filename: Optional[str]) -> str:
    if not filename or '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[1].lower()


def allowed_file(filename: Optional[str], allowed=None) -> bool:
    """Check if file extension is allowed."""
    extension = file_extension(filename)
    return bool(extension) and extension in (allowed or ALLOWED_EXTENSIONS)


def _safe_path(bucket: str, path: str) -> str:
    parts = [secure_filename(p) for p in path.replace('\\', '/').split('/') if p not in ('', '.', '..')]
    parts = [p for p in parts if p]
    if not parts:
        raise StorageError(f"Invalid storage path: {path!r}")
    return os.path.join(UPLOAD_FOLDER, secure_filename(bucket), *parts)


def storage_key(path: str) -> str:
    """Normalised relative path used inside a bucket."""
    parts = [secure_filename(p) for p in path.replace('\\', '/').split('/') if p not in ('', '.', '..')]
    return '/'.join(p for p in parts if p)


def upload(bucket: str, path: str, data: bytes, upsert: bool = False) -> str:
    """
    Store bytes at bucket/path and return the normalised path.

    Without upsert an existing object is an error.
    """
    full_path = _safe_path(bucket, path)
    if os.path.exists(full_path) and not upsert:
        raise StorageError(f"Object already exists: {bucket}/{path}")
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    with open(full_path, 'wb') as f:
        f.write(data)
    return storage_key(path)


def remove(bucket: str, path: str):
    full_path = _safe_path(bucket, path)
    if not os.path.exists(full_path):
        raise StorageError(f"Object not found: {bucket}/{path}")
    os.remove(full_path)


def local_path(bucket: str, path: str) -> str:
    return _safe_path(bucket, path)


def public_url(bucket: str, path: str) -> str:
    return f"{PUBLIC_STORAGE_URL.rstrip('/')}/{secure_filename(bucket)}/{storage_key(path)}"


def local_path_from_url(url: Optional[str]) -> Optional[str]:
    """Map a public storage URL back to its file, or None for foreign URLs."""
    prefix = PUBLIC_STORAGE_URL.rstrip('/') + '/'
    if not url or not url.startswith(prefix):
        return None
    bucket, _, path = url[len(prefix):].partition('/')
    if not bucket or not path:
        return None
    try:
        return _safe_path(bucket, path)
    except StorageError:
        return None


def generate_object_name(original_filename: str) -> str:
    """uploads/{millis}-{6 random chars}.{ext}"""
    millis = int(time.time() * 1000)
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=6))
    ext = file_extension(original_filename)
    name = f"{millis}-{suffix}.{ext}" if ext else f"{millis}-{suffix}"
    return f"uploads/{name}"


def build_attachment_meta(label: str, original_filename: str, bucket: str, path: str,
                          size: int, content_type: Optional[str]) -> Dict[str, Any]:
    return {
        "file_label": label,
        "original_file_name": original_filename,
        "file_url": public_url(bucket, path),
        "file_path": path,
        "bucket": bucket,
        "file_size": size,
        "file_type": content_type,
    }


def build_attachment_tree(platforms: List[Dict[str, Any]], components: List[Dict[str, Any]],
                          attachments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Nest attachments under their platform and component.

    Returns [{...platform, "attachments": [...], "components": [{...component,
    "attachments": [...]}]}].
    """
    by_source: Dict[tuple, List[Dict[str, Any]]] = {}
    for att in attachments:
        by_source.setdefault((att.get("source_type"), att.get("source_id")), []).append(att)

    comps_by_structure: Dict[Any, List[Dict[str, Any]]] = {}
    for comp in components:
        node = dict(comp)
        node["attachments"] = by_source.get((SOURCE_COMPONENT, comp["id"]), [])
        comps_by_structure.setdefault(comp.get("structure_id"), []).append(node)

    tree = []
    for platform in platforms:
        node = dict(platform)
        node["attachments"] = by_source.get((SOURCE_PLATFORM, platform["id"]), [])
        node["components"] = comps_by_structure.get(platform["id"], [])
        tree.append(node)
    return tree
