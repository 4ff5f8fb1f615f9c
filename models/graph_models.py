"""Define the node/resource/action graph produced by a conversion.

The interchange shape written for external consumers is a JSON object with the
top-level keys `root`, `nodes`, `resources` and `actions`. Inside that shape nodes
and resources are keyed by id and do not repeat their id.

Notes:
- `Node.states` holds transient, UI-only values. It is excluded from serialization
  and never consulted by the structural validator.
- Models here do not enforce referential integrity; see
  [`core.structural_validator`](core/structural_validator.py:1).
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

ACTION_TRIGGER_APPLY = "ActionButton_Apply"
ACTION_EVENT_REPLACE_MEDIA = "ImmersiveSlide_ReplaceMedia"


def as_text(value: Any) -> str | None:
    """Coerce a scalar interchange field to text; containers become `None`."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (Mapping, list, tuple, set)):
        return None
    return str(value)


class Node(BaseModel):
    """One renderable unit of the story."""

    id: str
    type: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    config: dict[str, Any] | None = None
    children: list[str] | None = None
    states: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "data": self.data}
        if self.config is not None:
            out["config"] = self.config
        if self.children is not None:
            out["children"] = list(self.children)
        return out

    @classmethod
    def from_dict(cls, node_id: str, data: Mapping[str, Any]) -> Node:
        raw_data = data.get("data")
        raw_children = data.get("children")
        return cls(
            id=node_id,
            type=as_text(data.get("type")),
            data=dict(raw_data) if isinstance(raw_data, Mapping) else {},
            config=dict(data["config"]) if isinstance(data.get("config"), Mapping) else None,
            children=[str(c) for c in raw_children] if isinstance(raw_children, list) else None,
        )


class Resource(BaseModel):
    """Non-node payload referenced by one or more nodes."""

    id: str
    type: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data}

    @classmethod
    def from_dict(cls, resource_id: str, data: Mapping[str, Any]) -> Resource:
        raw_data = data.get("data")
        return cls(
            id=resource_id,
            type=as_text(data.get("type")),
            data=dict(raw_data) if isinstance(raw_data, Mapping) else {},
        )


class Action(BaseModel):
    """An interaction record wiring an origin node to a target node."""

    origin: str | None = None
    trigger: str = ACTION_TRIGGER_APPLY
    target: str | None = None
    event: str = ACTION_EVENT_REPLACE_MEDIA
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_media_replacement(self) -> bool:
        return self.event == ACTION_EVENT_REPLACE_MEDIA

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()


class Graph(BaseModel):
    """The conversion output: a rooted node graph plus resources and actions."""

    root: str | None = None
    nodes: dict[str, Node] = Field(default_factory=dict)
    resources: dict[str, Resource] = Field(default_factory=dict)
    actions: list[Action] = Field(default_factory=list)

    def node(self, node_id: str) -> Node | None:
        return self.nodes.get(node_id)

    def nodes_of_type(self, node_type: str) -> list[Node]:
        return [n for n in self.nodes.values() if n.type == node_type]

    def resources_of_type(self, resource_type: str) -> list[Resource]:
        return [r for r in self.resources.values() if r.type == resource_type]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the interchange format.

        The root node is written last so consumers that stream nodes see its
        descendants first.
        """
        ordered = [nid for nid in self.nodes if nid != self.root]
        if self.root in self.nodes:
            ordered.append(self.root)
        return {
            "root": self.root,
            "nodes": {nid: self.nodes[nid].to_dict() for nid in ordered},
            "resources": {rid: r.to_dict() for rid, r in self.resources.items()},
            "actions": [a.to_dict() for a in self.actions],
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Graph:
        """Parse the interchange format leniently.

        Malformed entries are kept as far as possible so the structural validator
        can report them instead of failing at parse time.
        """
        raw_nodes = data.get("nodes") if isinstance(data.get("nodes"), Mapping) else {}
        raw_resources = data.get("resources") if isinstance(data.get("resources"), Mapping) else {}
        raw_actions = data.get("actions") if isinstance(data.get("actions"), list) else []
        nodes = {str(nid): Node.from_dict(str(nid), n if isinstance(n, Mapping) else {}) for nid, n in raw_nodes.items()}
        resources = {
            str(rid): Resource.from_dict(str(rid), r if isinstance(r, Mapping) else {}) for rid, r in raw_resources.items()
        }
        actions: list[Action] = []
        for raw in raw_actions:
            if not isinstance(raw, Mapping):
                # Kept as an empty action so indexes line up with the input list.
                actions.append(Action())
                continue
            actions.append(
                Action(
                    origin=as_text(raw.get("origin")),
                    trigger=as_text(raw.get("trigger")) or ACTION_TRIGGER_APPLY,
                    target=as_text(raw.get("target")),
                    event=as_text(raw.get("event")) or ACTION_EVENT_REPLACE_MEDIA,
                    data=dict(raw["data"]) if isinstance(raw.get("data"), Mapping) else {},
                )
            )
        return cls(root=as_text(data.get("root")), nodes=nodes, resources=resources, actions=actions)
