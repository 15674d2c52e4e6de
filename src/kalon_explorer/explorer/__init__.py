# src/kalon_explorer/explorer/__init__.py
from .listing import PaginatedListing
from .pagination import PaginationWindow, build_request, derive_window
from .views import BlocksView, DashboardView, NetworkView, TreasuryView, VIEWS

__all__ = [
    'PaginatedListing', 'PaginationWindow', 'build_request', 'derive_window',
    'BlocksView', 'DashboardView', 'NetworkView', 'TreasuryView', 'VIEWS',
]
