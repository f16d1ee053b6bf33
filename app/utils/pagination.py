from dataclasses import dataclass

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def clamp_limit(limit, default=DEFAULT_LIMIT, maximum=MAX_LIMIT):
    if limit is None:
        return default
    return max(1, min(int(limit), maximum))


def clamp_page(page):
    if page is None:
        return 1
    return max(1, int(page))


@dataclass(frozen=True)
class PageWindow:
    page: int
    limit: int

    @property
    def start(self):
        return (self.page - 1) * self.limit

    @property
    def end(self):
        return self.page * self.limit


def paginate(items, page, limit, truncated=False):
    """
    Slice an already refined list into one page.

    truncated means the candidate fetch hit its row cap, so more rows may
    exist in the store than in items.
    """
    window = PageWindow(clamp_page(page), clamp_limit(limit))
    page_items = items[window.start:window.end]

    remaining = len(items) > window.end
    window_full = len(page_items) == window.limit
    has_more = remaining or (truncated and window_full)

    if truncated and window_full:
        total = max(len(items), window.end + 1)
    else:
        total = len(items)

    return page_items, {
        "page": window.page,
        "limit": window.limit,
        "total": total,
        "hasMore": has_more,
    }


def offset_pagination(page, limit, total):
    """Pagination block for endpoints that page in SQL with LIMIT/OFFSET."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "hasMore": page * limit < total,
    }
