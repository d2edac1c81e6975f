"""Small formatting and paging helpers."""


def fmt_time(seconds: float) -> str:
    """Format seconds as m:ss or h:mm:ss."""
    total_s = max(0, int(seconds))
    h, rem = divmod(total_s, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def truncate(text: str, length: int) -> str:
    if length <= 0:
        return ""
    if len(text) <= length:
        return text
    return text[:length] + "…"


def total_pages(length: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return -(-length // page_size)


def paginate(items: list, page: int, page_size: int) -> list:
    """Slice out one page. Pages past the end are empty."""
    if page < 0 or page_size <= 0:
        return []
    start = page * page_size
    return items[start:start + page_size]
