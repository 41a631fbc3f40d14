"""Object key generation from user path templates.

Supported placeholders: ``{year}`` ``{mon}`` ``{day}`` ``{random}`` ``{filename}``.
For example ``/{year}/{mon}/{day}/{filename}`` with ``pic.jpg`` uploaded on
2023-06-08 yields ``/2023/06/08/pic 20230608101530123.jpg``.
"""

from __future__ import annotations

import random
import re
import string
from datetime import datetime

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
RANDOM_LENGTH = 20
DEFAULT_EXTENSION = "png"

_EXTENSION_SUFFIX = re.compile(r"\.[^/.]+$")


def random_string(length: int = RANDOM_LENGTH, *, rng: random.Random | None = None) -> str:
    chooser = rng or random
    return "".join(chooser.choice(ALPHABET) for _ in range(length))


def timestamp(now: datetime) -> str:
    """Millisecond timestamp ``YYYYMMDDHHmmssSSS``."""
    return now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}"


def unique_file_name(original_name: str, *, now: datetime | None = None) -> str:
    """Derive a collision-resistant file name from ``original_name``.

    Generic clipboard names (anything containing "image", or exactly "blob")
    become ``Pasted image {timestamp}.{ext}``; other names keep their stem.
    """
    now = now or datetime.now()
    stamp = timestamp(now)
    extension = original_name.rsplit(".", 1)[-1] if "." in original_name else ""
    extension = extension or DEFAULT_EXTENSION

    if "image" in original_name.lower() or original_name == "blob":
        return f"Pasted image {stamp}.{extension}"

    stem = _EXTENSION_SUFFIX.sub("", original_name)
    return f"{stem} {stamp}.{extension}"


def generate_key(
    template: str | None,
    original_name: str,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str:
    """Render ``template`` for ``original_name``.

    The result may start with ``/``; callers strip leading separators before
    using it as an object key.
    """
    now = now or datetime.now()
    file_name = unique_file_name(original_name, now=now)
    if template is None or not template.strip():
        return file_name

    replacements = {
        "{year}": f"{now.year:04d}",
        "{mon}": f"{now.month:02d}",
        "{day}": f"{now.day:02d}",
        "{random}": random_string(rng=rng),
        "{filename}": file_name,
    }
    key = template
    for token, value in replacements.items():
        key = key.replace(token, value)
    return key


__all__ = ["ALPHABET", "random_string", "timestamp", "unique_file_name", "generate_key"]
