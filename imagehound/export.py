"""Output path resolution and saving of hunted images."""

from __future__ import annotations

import json
import mimetypes
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from imagehound.errors import OutputPathError
from imagehound.models import HuntResult
from imagehound.sniff import sniff_image_type


def resolve_output_path(path: Optional[str], cwd: Optional[Path] = None) -> tuple[Path, Optional[str]]:
    """Split the ``--output`` value into ``(directory, filename)``.

    Relative paths are taken from *cwd*.  When *path* is empty or names an
    existing directory the filename is None, meaning "infer it".
    """
    base = cwd or Path.cwd()
    target = base / path if path else base
    target = Path(target).expanduser()

    if target.is_dir():
        return target, None

    directory = target.parent
    if not directory.exists():
        raise OutputPathError(f"directory {directory} does not exist")
    if not directory.is_dir():
        raise OutputPathError(f"{directory} is not a directory")
    return directory, target.name


def extension_for(content_type: Optional[str], body: bytes) -> str:
    """Pick a file extension from the response's content type or bytes."""
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if not mime:
        mime = sniff_image_type(body) or "application/octet-stream"

    if mime == "image/jpeg":  # avoid ".jpe"/".jfif"
        return ".jpg"
    if mime == "application/octet-stream":
        return ".bin"
    return mimetypes.guess_extension(mime) or ".bin"


def infer_filename(result: HuntResult, now: Optional[float] = None) -> str:
    """Filename for *result*: the URL's last path segment, plus an
    extension derived from the response when the segment has none.
    An empty segment becomes the current unix timestamp.
    """
    name = urlsplit(result.url).path.rsplit("/", 1)[-1]
    if "." in name:
        return name

    ext = extension_for(result.result.content_type, result.result.body)
    if not name:
        name = str(int(now if now is not None else time.time()))
    return name + ext


def write_image(result: HuntResult, output: Optional[str] = None, cwd: Optional[Path] = None) -> Path:
    """Write the hunted image to *output* and return the path written."""
    directory, filename = resolve_output_path(output, cwd)
    path = directory / (filename or infer_filename(result))
    try:
        path.write_bytes(result.result.body)
    except OSError as exc:
        raise OutputPathError(f"failed to write {path}: {exc}") from exc
    return path


def export_json(result: HuntResult, saved_to: Optional[Path] = None, indent: int = 2) -> str:
    """Summarise a successful hunt as a JSON string."""
    data = {
        "url": result.url,
        "ip": str(result.result.ip),
        "status_code": result.result.status_code,
        "content_type": result.result.content_type,
        "bytes": len(result.result.body),
        "variants_tried": result.variants_tried,
        "saved_to": str(saved_to) if saved_to else None,
    }
    return json.dumps(data, indent=indent)
