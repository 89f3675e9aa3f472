"""Terminal dashboard: rich view functions, and the textual app in ``clamdash.dashboard.app``."""

from clamdash.dashboard.views import VIEWS, render_view, status_line

__all__ = ["VIEWS", "render_view", "status_line"]
