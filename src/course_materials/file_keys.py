import re
import time
from typing import Optional

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.-]")


def sanitize_file_name(file_name: str) -> str:
    """Replace every character outside [A-Za-z0-9.-] with '_'."""
    return _UNSAFE_CHARS.sub("_", file_name)


def build_file_key(course_id: str, file_name: str, timestamp_ms: Optional[int] = None) -> str:
    """
    Storage key for a course material upload.
    Format: courses/{courseId}/materials/{epochMillis}-{sanitizedFileName}
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"courses/{course_id}/materials/{timestamp_ms}-{sanitize_file_name(file_name)}"
