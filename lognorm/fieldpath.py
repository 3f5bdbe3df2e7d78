"""Dot-delimited field paths over nested record dicts.

``"httpRequest.status"`` addresses ``record["httpRequest"]["status"]``. A
double-quoted segment is a single key even when it contains dots, as in
``labels."logging.googleapis.com/instrumentation_source"``. Unquoted keys may
also contain dots (Elasticsearch writes ``"cluster.name"`` as one key), so the
longest run of segments naming an existing key wins at every level.
"""

MISSING = object()
_NO_DEFAULT = object()


def split_path(path: str) -> list[str]:
    """Split *path* into segments, keeping quoted segments intact."""
    segments = []
    current = []
    quoted = False
    for ch in path:
        if ch == '"':
            quoted = not quoted
        elif ch == "." and not quoted:
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)
    segments.append("".join(current))
    return segments


def _descend(record: dict, segments: list[str]) -> tuple[dict, int, str | None]:
    """Walk existing dicts along *segments*.

    Returns ``(node, i, key)`` where ``key`` is the existing key in ``node``
    that consumes every remaining segment, or None when the walk stopped at
    segment ``i`` without finding the field.
    """
    node = record
    i = 0
    n = len(segments)
    while True:
        for j in range(n, i, -1):
            key = ".".join(segments[i:j])
            if key not in node:
                continue
            if j == n:
                return node, i, key
            child = node[key]
            if isinstance(child, dict):
                node, i = child, j
                break
        else:
            return node, i, None


def get_path(record: dict, path: str, default=None):
    node, _, key = _descend(record, split_path(path))
    if key is None:
        return default
    return node[key]


def has_path(record: dict, path: str) -> bool:
    return _descend(record, split_path(path))[2] is not None


def pop_path(record: dict, path: str, default=_NO_DEFAULT):
    """Remove *path* from *record* and return its value.

    Raises KeyError when the field is absent and no *default* is given.
    """
    node, _, key = _descend(record, split_path(path))
    if key is None:
        if default is _NO_DEFAULT:
            raise KeyError(path)
        return default
    return node.pop(key)


def set_path(record: dict, path: str, value) -> None:
    """Set *path* to *value*, creating intermediate dicts as needed."""
    segments = split_path(path)
    node, i, key = _descend(record, segments)
    if key is not None:
        node[key] = value
        return
    for segment in segments[i:-1]:
        # A scalar in the way is replaced by the new branch.
        child = node.get(segment)
        if not isinstance(child, dict):
            child = node[segment] = {}
        node = child
    node[segments[-1]] = value
