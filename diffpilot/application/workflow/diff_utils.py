"""Helpers for unified diffs returned by the tool server."""

import re

# "--- a/src/app.py" / "+++ b/src/app.py", optionally followed by a tab and a timestamp
_FILE_HEADER = re.compile(r"^(?:---|\+\+\+)\s+[ab]/(.+?)(?:\t.*)?$")


def changed_files(diff: str) -> list[str]:
    """Paths named in the diff's file headers, in order of first appearance."""
    files: list[str] = []
    for line in diff.splitlines():
        match = _FILE_HEADER.match(line)
        if match:
            path = match.group(1).strip()
            if path and path not in files:
                files.append(path)
    return files


def diff_preview(diff: str, limit: int = 500) -> tuple[str, bool]:
    """First ``limit`` characters of the diff and whether it was cut."""
    if len(diff) <= limit:
        return diff, False
    return diff[:limit], True
