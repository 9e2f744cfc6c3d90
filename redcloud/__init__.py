"""Red Cloud: workspaces, tasks and a guestbook with live-refreshing pages."""

__version__ = "0.1.0"
