"""Interactive canvas editing sequenced against the workflow store."""

from campaign_canvas.editor.session import START_NODE_ID, CanvasSession, start_node

__all__ = ["CanvasSession", "START_NODE_ID", "start_node"]
