from __future__ import annotations


def _to_int(token: str) -> int | None:
    try:
        return int(token)
    except ValueError:
        return None


def parse_page_range(expr: str, max_page: int) -> list[int]:
    """Expand ``"1-3, 5"`` style page expressions.

    Unparseable or out-of-range tokens are skipped; ranges are clamped to
    ``[1, max_page]``. The result is ascending with no duplicates, and empty
    when nothing could be read.
    """
    pages: set[int] = set()
    for item in expr.split(","):
        token = item.strip()
        if not token:
            continue
        if "-" in token:
            left, right = token.split("-", 1)
            start, end = _to_int(left.strip()), _to_int(right.strip())
            if start is None or end is None:
                continue
            start, end = max(1, start), min(max_page, end)
            pages.update(range(start, end + 1))
            continue
        number = _to_int(token)
        if number is not None and 1 <= number <= max_page:
            pages.add(number)
    return sorted(pages)
