"""API HTTP del planner."""

from planner.api.inbox import router as inbox_router

__all__ = ["inbox_router"]
