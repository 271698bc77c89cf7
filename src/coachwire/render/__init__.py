"""Rendering surfaces — where the orchestrator's output ends up."""

from coachwire.render.base import ConversationLog, LogEntry, ProgressSnapshot, RenderSurface

__all__ = ["RenderSurface", "ConversationLog", "LogEntry", "ProgressSnapshot"]
