"""
Pydantic models for the two shapes of a campaign workflow.

The persisted shape is a forest of ``EventNode`` trees, each carrying child
events and leaf ``ActionLeaf`` effects. The canvas shape is the flat
node/edge/action list the visual editor works on. Field names follow the
persisted JSON payload so models round-trip through the REST API unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from campaign_canvas.errors import StructuralIntegrityError


EDGE_TYPE = "smoothstep"
ARROW_MARKER = "arrowclosed"


class WireModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        validate_assignment=True,
    )


def _empty_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# -----------------------------
# Persisted (tree) shape
# -----------------------------
class EventCategory(str, Enum):
    web = "web"
    mobile = "mobile"


class MessageTemplate(WireModel):
    """A message shown to the end user when an action fires."""

    id: Optional[str] = None
    title: str = ""
    message: str = ""
    message_type: str = "info"
    display_duration: int = Field(default=5000, ge=0)  # milliseconds
    template_name: str = ""
    template_config: Dict[str, Any] = Field(default_factory=dict)
    position: str = "bottom-right"
    theme: Optional[str] = None
    custom_theme: Optional[Dict[str, str]] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ActionLeaf(WireModel):
    """An effect attached to exactly one event."""

    id: Optional[str] = None
    action_type: str = Field(min_length=1)
    action_config: Dict[str, Any] = Field(default_factory=dict)
    workflow_event: Optional[str] = None  # owning event id
    web_message_id: Optional[str] = None
    web_message: Optional[MessageTemplate] = None
    delay_seconds: int = Field(default=0, ge=0)
    is_active: bool = True

    # scheduling window
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    # conversion tracking
    conversion_tracking: bool = False
    conversion_time: Optional[str] = None
    revenue_property: Optional[str] = None

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("start_date", "end_date", "conversion_time", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        return _empty_to_none(value)

    @field_validator("delay_seconds", mode="before")
    @classmethod
    def _null_delay(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def template_id(self) -> Optional[str]:
        if self.web_message_id:
            return self.web_message_id
        if self.web_message is not None:
            return self.web_message.id
        return None


class EventNode(WireModel):
    """
    A trigger condition in the workflow hierarchy.

    ``subordinate_count`` is derived and never trusted from storage; call
    ``compute_subordinates`` after any structural change.
    """

    id: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    category: EventCategory = EventCategory.web
    event_type: str = Field(min_length=1)
    parent_id: Optional[str] = None
    children: List[EventNode] = Field(default_factory=list)
    subordinate_count: int = Field(default=0, ge=0, alias="subordinates")
    actions: List[ActionLeaf] = Field(default_factory=list)
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("children", "actions", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return EventCategory.web if value in (None, "") else value

    @field_validator("parent_id", mode="before")
    @classmethod
    def _blank_parent(cls, value: Any) -> Any:
        return _empty_to_none(value)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def walk(self):
        """Yield this event and every descendant, pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


class WorkflowTree(WireModel):
    """The unit of persistence: a named forest of events."""

    id: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    is_active: bool = True
    live_status: bool = False
    events: List[EventNode] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # Canvas nodes that could not be placed in the forest on the last
    # reconstruction. Never sent to the server.
    unreachable_events: List[EventNode] = Field(default_factory=list, exclude=True)

    @field_validator("events", mode="before")
    @classmethod
    def _null_events(cls, value: Any) -> Any:
        return [] if value is None else value

    def walk(self):
        for event in self.events:
            yield from event.walk()


# -----------------------------
# Canvas (graph) shape
# -----------------------------
class Position(WireModel):
    x: float = 0
    y: float = 0


class NodeProperties(WireModel):
    event_type: str = Field(min_length=1)
    category: EventCategory = EventCategory.web
    parent_id: Optional[str] = None
    action_ids: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)  # per event type knobs (url pattern, selector, ...)

    @field_validator("action_ids", mode="before")
    @classmethod
    def _unique_action_ids(cls, value: Any) -> Any:
        if value is None:
            return []
        seen: Dict[str, None] = {}
        for item in value:
            if item is not None:
                seen.setdefault(item, None)
        return list(seen)

    @field_validator("parent_id", mode="before")
    @classmethod
    def _blank_parent(cls, value: Any) -> Any:
        return _empty_to_none(value)

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return EventCategory.web if value in (None, "") else value


class CanvasNode(WireModel):
    """One event as drawn on the canvas."""

    id: str = Field(min_length=1)
    kind: str = Field(min_length=1)  # editor node type
    position: Position = Field(default_factory=Position)
    label: str = ""
    description: Optional[str] = None
    properties: NodeProperties

    @property
    def event_type(self) -> str:
        return self.properties.event_type or self.kind


class CanvasEdge(WireModel):
    """A directed parent -> child link."""

    id: str = Field(min_length=1)
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    type: str = EDGE_TYPE
    animated: bool = False
    marker_end: Dict[str, str] = Field(
        default_factory=lambda: {"type": ARROW_MARKER},
        alias="markerEnd",
    )

    @classmethod
    def between(cls, source: str, target: str) -> CanvasEdge:
        return cls(id=f"e{source}-{target}", source=source, target=target)


class CanvasWorkflow(WireModel):
    """
    Derived, regenerable view of a ``WorkflowTree`` for the canvas editor.

    ``actions`` is the single authoritative action table; nodes reference it
    through ``properties.action_ids``.
    """

    id: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    nodes: List[CanvasNode] = Field(default_factory=list)
    edges: List[CanvasEdge] = Field(default_factory=list)
    actions: List[ActionLeaf] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def node(self, node_id: str) -> Optional[CanvasNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def incoming_edge(self, node_id: str) -> Optional[CanvasEdge]:
        for edge in self.edges:
            if edge.target == node_id:
                return edge
        return None

    def action_table(self) -> Dict[str, ActionLeaf]:
        return {action.id: action for action in self.actions if action.id is not None}

    def to_react_flow(self) -> Dict[str, Any]:
        """Render the canvas in the editor library's nodes/edges JSON shape."""
        nodes = []
        for node in self.nodes:
            properties = node.properties.model_dump(mode="json", exclude={"action_ids", "settings"})
            properties["actions"] = list(node.properties.action_ids)
            properties.update(node.properties.settings)
            nodes.append({
                "id": node.id,
                "type": node.kind,
                "position": {"x": node.position.x, "y": node.position.y},
                "data": {
                    "label": node.label,
                    "description": node.description,
                    "type": node.properties.event_type,
                    "properties": properties,
                },
            })
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "nodes": nodes,
            "edges": [edge.model_dump(mode="json", by_alias=True) for edge in self.edges],
            "actions": [action.model_dump(mode="json") for action in self.actions],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


_PROPERTY_KEYS = {"event_type", "category", "parent_id", "created_at", "updated_at"}


def _node_from_react_flow(node: Dict[str, Any]) -> CanvasNode:
    data = node.get("data") or {}
    raw_properties = dict(data.get("properties") or {})
    event_type = raw_properties.get("event_type") or data.get("type") or node.get("type")
    kind = node.get("type") or event_type
    position = node.get("position") or {}

    properties = {key: raw_properties.pop(key) for key in list(raw_properties) if key in _PROPERTY_KEYS}
    properties["event_type"] = event_type
    properties["action_ids"] = raw_properties.pop("actions", None) or []
    raw_properties.pop("parent", None)
    properties["settings"] = raw_properties

    return CanvasNode(
        id=node["id"],
        kind=kind,
        position=Position(x=position.get("x", 0), y=position.get("y", 0)),
        label=data.get("label") or "",
        description=data.get("description"),
        properties=NodeProperties(**properties),
    )


def canvas_from_react_flow(graph_data: Dict[str, Any]) -> CanvasWorkflow:
    """
    Validate and convert editor graph data to a CanvasWorkflow.

    Raises:
        StructuralIntegrityError: If a node, edge or action is malformed
    """
    try:
        nodes = [_node_from_react_flow(node) for node in graph_data.get("nodes") or []]
        edges = [
            CanvasEdge(
                id=edge.get("id") or f"e{edge['source']}-{edge['target']}",
                source=edge["source"],
                target=edge["target"],
                type=edge.get("type") or EDGE_TYPE,
                animated=bool(edge.get("animated", False)),
                marker_end=edge.get("markerEnd") or {"type": ARROW_MARKER},
            )
            for edge in graph_data.get("edges") or []
        ]
        actions = [ActionLeaf.model_validate(action) for action in graph_data.get("actions") or []]
    except (KeyError, ValidationError) as exc:
        raise StructuralIntegrityError(f"Invalid canvas graph data: {exc}") from exc

    return CanvasWorkflow(
        id=graph_data.get("id"),
        name=graph_data.get("name") or "",
        description=graph_data.get("description"),
        nodes=nodes,
        edges=edges,
        actions=actions,
        created_at=graph_data.get("created_at"),
        updated_at=graph_data.get("updated_at"),
    )


EventNode.model_rebuild()
