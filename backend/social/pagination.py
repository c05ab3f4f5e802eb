"""
Offset pagination shared by every read path.

has_more is `returned == page_size`, not a COUNT. The exact total costs a
full COUNT over the filtered graph, so it is only computed for the first
page or when the caller asks for it explicitly.
"""

from django.conf import settings

from .errors import ValidationFailed


def default_page_size() -> int:
    return getattr(settings, 'FEED_DEFAULT_PAGE_SIZE', 20)


def max_page_size() -> int:
    return getattr(settings, 'FEED_MAX_PAGE_SIZE', 100)


class Page:
    """One page of a read path result."""

    def __init__(self, items: list, page: int, page_size: int, total: int | None = None):
        self.items = items
        self.page = page
        self.page_size = page_size
        self.total = total
        self.has_more = len(items) == page_size

    def as_meta(self) -> dict:
        return {
            'page': self.page,
            'page_size': self.page_size,
            'has_more': self.has_more,
            'total': self.total,
        }


def validate_int(field: str, value, minimum: int, maximum: int | None = None) -> int:
    """Reject anything that isn't an int within bounds. No silent defaults."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed(field, f"{field} must be an integer")
    if value < minimum:
        raise ValidationFailed(field, f"{field} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationFailed(field, f"{field} must be <= {maximum}")
    return value


def validate_page(page, page_size) -> tuple[int, int]:
    if page_size is None:
        page_size = default_page_size()
    page = validate_int('page', page, 1)
    page_size = validate_int('page_size', page_size, 1, max_page_size())
    return page, page_size


def validate_choice(field: str, value, choices) -> str:
    if value not in choices:
        raise ValidationFailed(
            field,
            f"Invalid {field} '{value}'. Expected one of: {', '.join(choices)}"
        )
    return value


def paginate(queryset, page: int, page_size: int, include_total: bool | None = None) -> Page:
    """
    Slice one page out of an ordered queryset.

    include_total=None means "only on page 1"; True/False force it.
    """
    offset = (page - 1) * page_size
    items = list(queryset[offset:offset + page_size])

    total = None
    if include_total or (include_total is None and page == 1):
        total = queryset.order_by().count()

    return Page(items, page, page_size, total)
