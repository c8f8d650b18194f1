"""Chat bridge for GitHub webhooks and quick-action replies.

This package connects a chat surface to GitHub, providing:
- Webhook envelope parsing and short-circuiting event routing
- Authenticated REST calls with transparent OAuth token refresh
- Per-notification quick-action menus with a bounded, expiring registry
- Replay of free-text chat replies as GitHub API actions
"""

__version__ = "0.4.0"
