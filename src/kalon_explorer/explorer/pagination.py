# File: src/kalon_explorer/explorer/pagination.py
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..utils.config import Config


@dataclass(frozen=True)
class PaginationWindow:
    page: int
    page_size: int
    total_items: int
    total_pages: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def __str__(self) -> str:
        return f"Page {self.page} of {self.total_pages}"


def clean_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop empty filters and trim string values."""
    cleaned = {}
    for name, value in (filters or {}).items():
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            continue
        cleaned[name] = value
    return cleaned


def build_request(
    page: int,
    page_size: int,
    filters: Optional[Mapping[str, Any]] = None,
    max_page_size: int = Config.MAX_PAGE_SIZE
) -> Dict[str, Any]:
    """Stable query parameters for one page of a listing."""
    params = clean_filters(filters)
    params["page"] = max(1, int(page))
    params["limit"] = min(max(1, int(page_size)), max_page_size)
    return dict(sorted(params.items()))


def derive_window(total: Optional[int], page_size: int, requested_page: int) -> PaginationWindow:
    """Clamp the requested page to the pages the server-reported total allows."""
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    total_items = max(0, total or 0)
    total_pages = math.ceil(total_items / page_size)
    page = min(max(1, requested_page), max(total_pages, 1))
    return PaginationWindow(
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages
    )
