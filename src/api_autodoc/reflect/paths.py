"""Route path normalization.

Express keeps compiled matchers next to every layer, and paths recovered from
them carry regex leftovers (anchors, lookaheads, escaped slashes). These
helpers turn such fragments back into plain route paths.
"""

import re

PARAM_PATTERN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")

_LOOKAHEAD = re.compile(r"\(\?=[^)]*\)")
_OPTIONAL_SLASH = re.compile(r"/\?(?=/*$)")
_TRAILING_ANCHOR = re.compile(r"\$(?=/*$)")
_SLASHES = re.compile(r"/{2,}")
# An escaped word character right after ":name" is not part of the name
_ESCAPED_AFTER_PARAM = re.compile(r"(:[A-Za-z_][A-Za-z0-9_]*)\\+[A-Za-z0-9_]+")


def clean(raw_path: str | None) -> str:
    """Normalize a raw route path.

    The result has exactly one leading slash, no repeated or trailing
    slashes, and no regex artifacts. The root path normalizes to "/".
    """
    path = raw_path or ""
    previous = None
    # Stripping one artifact can expose another, so run to a fixed point.
    while path != previous:
        previous = path
        path = _strip_artifacts(path)
    return path


def _strip_artifacts(path: str) -> str:
    path = _ESCAPED_AFTER_PARAM.sub(r"\1", path)
    path = path.replace("\\", "")
    path = _LOOKAHEAD.sub("", path)
    path = path.replace("^", "")
    path = _TRAILING_ANCHOR.sub("", path)
    path = _OPTIONAL_SLASH.sub("", path)
    path = _SLASHES.sub("/", path)

    path = path.rstrip("/")
    if not path.startswith("/"):
        path = "/" + path
    return path


def extract_parameters(path: str) -> list[str]:
    """Return the ``:name`` parameters of a path, first occurrence first.

    e.g. /users/:id/posts/:postId => ["id", "postId"]
    """
    params: list[str] = []
    for match in PARAM_PATTERN.finditer(path or ""):
        name = match.group(1)
        if name not in params:
            params.append(name)
    return params
