DEFAULT_SNAP_THRESHOLD = 8


def _edges(rect: dict) -> dict:
    x = rect["x"]
    y = rect["y"]
    width = rect["width"]
    height = rect["height"]
    return {
        "left": x,
        "right": x + width,
        "center_x": x + width / 2,
        "top": y,
        "bottom": y + height,
        "center_y": y + height / 2,
    }


# (current edge, sibling edge). Cross pairs catch items touching side to side.
_VERTICAL_PAIRS = (
    ("left", "left"),
    ("right", "right"),
    ("left", "right"),
    ("right", "left"),
    ("center_x", "center_x"),
)
_HORIZONTAL_PAIRS = (
    ("top", "top"),
    ("bottom", "bottom"),
    ("top", "bottom"),
    ("bottom", "top"),
    ("center_y", "center_y"),
)


def _dedupe(values: list) -> list:
    seen = set()
    out = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


def compute_guides(
    current: dict,
    others: list[dict],
    threshold: float = DEFAULT_SNAP_THRESHOLD,
) -> dict[str, list[float]]:
    """
    Computes the alignment guides to show while `current` is dragged or resized.

    Each rect is {"x", "y", "width", "height"}. For every sibling in `others`,
    five edge/center pairs are compared per axis; a pair within `threshold`
    (inclusive) contributes the SIBLING's coordinate, so the guide sits where
    the moving item should snap to.

    Returns: {"vertical": [104, 154, 129], "horizontal": [100, 150, 125]}

    Lists are deduplicated by exact value and keep first-seen order.
    Negative sizes and NaN coordinates are not supported.
    """
    vertical: list[float] = []
    horizontal: list[float] = []

    cur = _edges(current)
    for other in others:
        sib = _edges(other)
        for cur_key, sib_key in _VERTICAL_PAIRS:
            if abs(cur[cur_key] - sib[sib_key]) <= threshold:
                vertical.append(sib[sib_key])
        for cur_key, sib_key in _HORIZONTAL_PAIRS:
            if abs(cur[cur_key] - sib[sib_key]) <= threshold:
                horizontal.append(sib[sib_key])

    return {"vertical": _dedupe(vertical), "horizontal": _dedupe(horizontal)}
