# core/graph_builder.py
"""Assemble the node/resource/action graph for one conversion.

The builder exclusively owns the in-progress [`Graph`](models/graph_models.py:1)
until [`build()`](core/graph_builder.py) normalizes it and hands it over. Node and
resource ids come from a per-run [`IdAllocator`](core/id_allocator.py:1).

Placement rules:
- `attach()` without a parent inserts into the root's children immediately before
  the first `credits` node, or appends when there is none.
- `create_detached()` creates a node that is referenced structurally (slide media,
  carousel members, swipe panes) instead of positioned directly.
- Attaching to a parent that does not exist is a programming error and raises
  `BuilderInvariantError`.

Media discovery:
    Every remote image/video resource queues a `TransferRequest`. After the
    transfer phase, `apply_transfer_outcomes()` swaps transferred sources for
    locally addressable resource names and leaves the rest pointing at the
    original remote URL.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

import structlog

from core.exceptions import BuilderInvariantError, create_error_context
from core.id_allocator import IdAllocator, IdNamespace
from core.transfer_orchestrator import normalize_source_url
from models.conversion_models import TransferOutcome, TransferRequest
from models.graph_models import (
    ACTION_EVENT_REPLACE_MEDIA,
    ACTION_TRIGGER_APPLY,
    Action,
    Graph,
    Node,
    Resource,
)

logger = structlog.get_logger(__name__)

TERMINAL_NODE_TYPE = "credits"
IMMERSIVE_NODE_TYPE = "immersive"
SLIDE_NODE_TYPE = "immersive-slide"
NARRATIVE_PANEL_NODE_TYPE = "immersive-narrative-panel"
DEPRECATED_ROOT_FIELDS = ("metaSettings",)
CAROUSEL_MAX_IMAGES = 5
TOUR_ACCENT_COLOR = "#f9f794"

WEBMAP_NODE_SIZES = ("standard", "wide")
SIDECAR_SUBTYPES = ("docked-panel", "floating-panel")
PANEL_POSITIONS = ("start", "end")
PANEL_SIZES = ("small", "medium", "large")

_EMBED_URLS = {
    "youtube": "https://www.youtube.com/embed/{id}",
    "vimeo": "https://player.vimeo.com/video/{id}",
}


class GroupKind(str, Enum):
    """Fixed multi-node templates produced by `compose_group()`."""

    SIDECAR = "sidecar"
    SLIDE = "slide"
    CAROUSEL = "carousel"
    SWIPE = "swipe"


def compact(data: Mapping[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is `None`."""
    return {k: v for k, v in data.items() if v is not None}


def is_remote_source(src: str | None) -> bool:
    return bool(src) and str(src).strip().lower().startswith(("http://", "https://", "//"))


class GraphBuilder:
    """Own and mutate one in-progress graph.

    Args:
        theme_id: Base theme for the `story-theme` resource.
        allocator: Identifier allocator; a fresh one is created when omitted.
        theme_overrides: Theme variable overrides recorded on the theme resource.
        suppress_converter_metadata: When set, `add_converter_metadata()` is a no-op.
    """

    def __init__(
        self,
        theme_id: str = "summit",
        allocator: IdAllocator | None = None,
        theme_overrides: Mapping[str, Any] | None = None,
        suppress_converter_metadata: bool = False,
    ):
        self._allocator = allocator or IdAllocator()
        self._graph = Graph()
        self._sealed = False
        self._theme_resource_id: str | None = None
        self._image_by_source: dict[str, str] = {}
        self._webmap_by_item: dict[str, str] = {}
        self._media_requests: list[TransferRequest] = []
        self._suppress_metadata = suppress_converter_metadata
        self._theme_id = theme_id
        self._theme_overrides = dict(theme_overrides or {})

    # ------------------------------------------------------------------ state

    @property
    def root_id(self) -> str:
        if self._graph.root is None:
            raise BuilderInvariantError("Story root has not been created")
        return self._graph.root

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def media_requests(self) -> list[TransferRequest]:
        return list(self._media_requests)

    def peek(self) -> Graph:
        """Return the in-progress graph for read-only inspection."""
        return self._graph

    def has_node(self, node_id: str | None) -> bool:
        return node_id is not None and node_id in self._graph.nodes

    def node(self, node_id: str, expected_type: str | None = None) -> Node:
        node = self._graph.nodes.get(node_id)
        if node is None:
            raise BuilderInvariantError("Unknown node id", details={"node_id": node_id})
        if expected_type is not None and node.type != expected_type:
            raise BuilderInvariantError(
                f"Node is not of type {expected_type}",
                details={"node_id": node_id, "actual_type": node.type},
            )
        return node

    def resource(self, resource_id: str, expected_type: str | None = None) -> Resource:
        resource = self._graph.resources.get(resource_id)
        if resource is None:
            raise BuilderInvariantError("Unknown resource id", details={"resource_id": resource_id})
        if expected_type is not None and resource.type != expected_type:
            raise BuilderInvariantError(
                f"Resource is not of type {expected_type}",
                details={"resource_id": resource_id, "actual_type": resource.type},
            )
        return resource

    def allocate_id(self, namespace: IdNamespace = IdNamespace.NODE) -> str:
        """Issue an id that is not backed by a node (tour place and geometry keys)."""
        self._ensure_open()
        return self._allocator.next_id(namespace)

    def _ensure_open(self) -> None:
        if self._sealed:
            raise BuilderInvariantError("Graph already built; builder no longer owns it")

    # --------------------------------------------------------- core primitives

    def _new_node(
        self,
        node_type: str,
        data: Mapping[str, Any] | None,
        config: Mapping[str, Any] | None,
        children: Sequence[str] | None,
    ) -> Node:
        self._ensure_open()
        if not node_type:
            raise BuilderInvariantError("Node type is required")
        for child in children or ():
            self.node(child)
        node = Node(
            id=self._allocator.next_id(IdNamespace.NODE),
            type=node_type,
            data=compact(data or {}),
            config=compact(config) if config is not None else None,
            children=list(children) if children is not None else None,
        )
        self._graph.nodes[node.id] = node
        return node

    def attach(
        self,
        node_type: str,
        data: Mapping[str, Any] | None = None,
        *,
        config: Mapping[str, Any] | None = None,
        children: Sequence[str] | None = None,
        parent: str | None = None,
    ) -> str:
        """Create a node and position it.

        Args:
            node_type: Node schema tag.
            data: Type-specific fields; `None` values are dropped.
            config: Layout directives.
            children: Existing child node ids, for container nodes.
            parent: Parent node id. When omitted the node becomes top-level content
                placed before the credits node.

        Returns:
            The new node id.

        Raises:
            BuilderInvariantError: If `parent` (or a child) does not exist, or the
                story root has not been created yet.
        """
        if parent is not None:
            parent_node = self.node(parent)
            node = self._new_node(node_type, data, config, children)
            if parent_node.children is None:
                parent_node.children = []
            parent_node.children.append(node.id)
            return node.id
        root = self.node(self.root_id)
        node = self._new_node(node_type, data, config, children)
        self._insert_before_terminal(root, node.id)
        return node.id

    def create_detached(
        self,
        node_type: str,
        data: Mapping[str, Any] | None = None,
        *,
        config: Mapping[str, Any] | None = None,
        children: Sequence[str] | None = None,
    ) -> str:
        """Create a node without linking it into any parent's children."""
        return self._new_node(node_type, data, config, children).id

    def add_resource(self, resource_type: str, data: Mapping[str, Any] | None = None) -> str:
        self._ensure_open()
        if not resource_type:
            raise BuilderInvariantError("Resource type is required")
        resource = Resource(
            id=self._allocator.next_id(IdNamespace.RESOURCE),
            type=resource_type,
            data=compact(data or {}),
        )
        self._graph.resources[resource.id] = resource
        return resource.id

    def add_child(self, parent_id: str, child_id: str) -> None:
        self._ensure_open()
        parent = self.node(parent_id)
        self.node(child_id)
        if parent.children is None:
            parent.children = []
        if child_id not in parent.children:
            parent.children.append(child_id)

    def place_top_level(self, node_id: str) -> None:
        """Position an existing detached node as top-level content."""
        self._ensure_open()
        self.node(node_id)
        self._insert_before_terminal(self.node(self.root_id), node_id)

    def _insert_before_terminal(self, root: Node, node_id: str) -> None:
        if root.children is None:
            root.children = []
        for index, child_id in enumerate(root.children):
            child = self._graph.nodes.get(child_id)
            if child is not None and child.type == TERMINAL_NODE_TYPE:
                root.children.insert(index, node_id)
                return
        root.children.append(node_id)

    def update_node_data(self, node_id: str, **values: Any) -> None:
        """Merge values into a node's data; a `None` value removes the key."""
        self._ensure_open()
        node = self.node(node_id)
        for key, value in values.items():
            if value is None:
                node.data.pop(key, None)
            else:
                node.data[key] = value

    def update_resource_data(self, resource_id: str, **values: Any) -> None:
        self._ensure_open()
        resource = self.resource(resource_id)
        for key, value in values.items():
            if value is None:
                resource.data.pop(key, None)
            else:
                resource.data[key] = value

    # ------------------------------------------------------------ compositions

    def compose_group(
        self,
        kind: GroupKind | str,
        member_ids: Sequence[str],
        *,
        parent: str | None = None,
        **options: Any,
    ) -> str:
        """Build a fixed multi-node template around existing member nodes.

        Args:
            kind: Which template to build.
            member_ids: Existing node ids the template wraps (slides for a sidecar,
                narrative content for a slide, images for a carousel, the two panes
                of a swipe).
            parent: Where to splice the group. Required for slides (the sidecar);
                sidecars default to top-level placement; carousels and swipes stay
                detached unless a parent is given.
            **options: Template options (`subtype`, `position`, `size` for sidecars;
                `media` for slides; `view_placement`, `caption` for swipes).

        Returns:
            The id of the group's outermost node.

        Raises:
            BuilderInvariantError: On unknown members, a missing or wrong-typed
                parent, or a member count the template cannot take.
        """
        kind = GroupKind(kind)
        members = list(member_ids)
        for member in members:
            self.node(member)

        if kind is GroupKind.SIDECAR:
            subtype = options.get("subtype", "docked-panel")
            position = options.get("position", "end")
            size = options.get("size", "medium")
            if subtype not in SIDECAR_SUBTYPES or position not in PANEL_POSITIONS or size not in PANEL_SIZES:
                raise BuilderInvariantError(
                    "Invalid sidecar layout",
                    details=create_error_context(subtype=subtype, position=position, size=size),
                )
            for member in members:
                self.node(member, SLIDE_NODE_TYPE)
            data = {
                "type": "sidecar",
                "subtype": subtype,
                "narrativePanelPosition": position,
                "narrativePanelSize": size,
            }
            if parent is not None:
                return self.attach(IMMERSIVE_NODE_TYPE, data, children=members, parent=parent)
            return self.attach(IMMERSIVE_NODE_TYPE, data, children=members)

        if kind is GroupKind.SLIDE:
            if parent is None:
                raise BuilderInvariantError("A slide needs its sidecar as parent")
            self.node(parent, IMMERSIVE_NODE_TYPE)
            media = options.get("media")
            if media is not None:
                self.node(media)
            panel_id = self.create_detached(NARRATIVE_PANEL_NODE_TYPE, {"panelStyle": "themed"}, children=members)
            slide_children = [panel_id] + ([media] if media is not None else [])
            return self.attach(SLIDE_NODE_TYPE, {"transition": "fade"}, children=slide_children, parent=parent)

        if kind is GroupKind.CAROUSEL:
            if not members:
                raise BuilderInvariantError("A carousel needs at least one image")
            for member in members:
                self.node(member, "image")
            kept = members[:CAROUSEL_MAX_IMAGES]
            if parent is not None:
                return self.attach("carousel", {}, children=kept, parent=parent)
            return self.create_detached("carousel", {}, children=kept)

        # GroupKind.SWIPE
        if len(members) != 2:
            raise BuilderInvariantError("A swipe takes exactly two panes", details={"count": len(members)})
        data = {
            "contents": {"0": members[0], "1": members[1]},
            "viewPlacement": options.get("view_placement", "extent"),
            "caption": options.get("caption"),
        }
        if parent is not None:
            return self.attach("swipe", data, config={"size": "full"}, parent=parent)
        return self.create_detached("swipe", data, config={"size": "full"})

    def add_sidecar(self, subtype: str = "docked-panel", position: str = "end", size: str = "medium") -> str:
        return self.compose_group(GroupKind.SIDECAR, [], subtype=subtype, position=position, size=size)

    def add_slide(self, sidecar_id: str, narrative_ids: Sequence[str], media_id: str | None = None) -> str:
        return self.compose_group(GroupKind.SLIDE, narrative_ids, parent=sidecar_id, media=media_id)

    # ---------------------------------------------------------------- scaffold

    def create_story_root(self) -> str:
        """Create the `story` root with its theme resource."""
        self._ensure_open()
        if self._graph.root is not None:
            raise BuilderInvariantError("Story root already exists", details={"root": self._graph.root})
        self._theme_resource_id = self.add_resource(
            "story-theme",
            {"themeId": self._theme_id, "themeBaseVariableOverrides": dict(self._theme_overrides)},
        )
        root = self._new_node(
            "story",
            {"storyTheme": self._theme_resource_id},
            {"coverDate": "", "shouldPushMetaToAGOItemDetails": False},
            [],
        )
        self._graph.root = root.id
        return root.id

    def add_cover(self, title: str, summary: str | None = None, byline: str | None = None) -> str:
        data = {
            "type": "minimal",
            "title": title or "",
            "summary": summary or "",
            "byline": byline or "",
            "titlePanelVerticalPosition": "top",
            "titlePanelHorizontalPosition": "start",
            "titlePanelStyle": "gradient",
        }
        return self.attach("storycover", data)

    def set_cover_image(self, resource_id: str) -> None:
        self.resource(resource_id, "image")
        for node in self._graph.nodes.values():
            if node.type == "storycover":
                self.update_node_data(node.id, image=resource_id)
                return
        raise BuilderInvariantError("No cover node to attach an image to")

    def add_navigation(self, hidden: bool = True) -> str:
        return self.attach("navigation", {"links": []}, config={"isHidden": hidden})

    def add_credits(self) -> str:
        attribution = self.create_detached("attribution", {"content": "", "attribution": ""})
        return self.attach(TERMINAL_NODE_TYPE, {}, children=[attribution])

    def scaffold(self, title: str, summary: str | None = None, byline: str | None = None) -> str:
        """Create root, cover, hidden navigation and credits; return the root id."""
        root_id = self.create_story_root()
        self.add_cover(title, summary, byline)
        self.add_navigation(hidden=True)
        self.add_credits()
        return root_id

    def apply_theme(self, theme_id: str, overrides: Mapping[str, Any] | None = None) -> None:
        self._theme_id = theme_id
        if overrides:
            self._theme_overrides.update(overrides)
        if self._theme_resource_id is not None:
            self.update_resource_data(
                self._theme_resource_id,
                themeId=theme_id,
                themeBaseVariableOverrides=dict(self._theme_overrides),
            )

    # ---------------------------------------------------------- node factories

    def create_text(self, text: str, text_type: str = "paragraph", size: str | None = None) -> str:
        return self.create_detached(
            "text",
            {"text": text, "type": text_type, "textAlignment": "start"},
            config={"size": size} if size else None,
        )

    def create_rich_text(self, html: str, text_type: str = "paragraph", size: str | None = None) -> str:
        return self.create_detached(
            "text",
            {"text": html, "type": text_type, "textAlignment": "start", "preserveHtml": True},
            config={"size": size} if size else None,
        )

    def create_image(
        self, resource_id: str, caption: str | None = None, alt: str | None = None, size: str = "standard"
    ) -> str:
        self.resource(resource_id, "image")
        return self.create_detached(
            "image",
            {"image": resource_id, "caption": caption or None, "alt": alt or None},
            config={"size": size},
        )

    def create_webmap(self, resource_id: str, caption: str | None = None, size: str = "standard", **data: Any) -> str:
        self.resource(resource_id, "webmap")
        payload = {"map": resource_id, "caption": caption or None, **data}
        payload.pop("scale", None)
        return self.create_detached("webmap", payload, config={"size": size})

    def create_video(self, resource_id: str, caption: str | None = None, alt: str | None = None) -> str:
        self.resource(resource_id, "video")
        return self.create_detached("video", {"video": resource_id, "caption": caption or None, "alt": alt or None})

    def create_video_embed(
        self,
        url: str,
        provider: str,
        video_id: str,
        caption: str | None = None,
        title: str | None = None,
        alt: str | None = None,
    ) -> str:
        template = _EMBED_URLS.get(provider)
        embed_src = template.format(id=video_id) if template else url
        data = {
            "url": url,
            "embedSrc": embed_src,
            "embedType": "video",
            "display": "inline",
            "aspectRatio": "16:9",
            "isEmbedSupported": template is not None,
            "caption": caption or None,
            "title": title or None,
            "alt": alt or None,
            "provider": provider,
        }
        return self.create_detached("embed", data, config={"size": "standard"})

    def create_embed(
        self,
        url: str,
        caption: str | None = None,
        title: str | None = None,
        description: str | None = None,
        alt: str | None = None,
    ) -> str:
        data = {
            "url": url,
            "embedType": "link",
            "display": "card",
            "caption": caption or None,
            "title": title or None,
            "description": description or None,
            "alt": alt or None,
        }
        return self.create_detached("embed", data, config={"size": "standard"})

    def create_action_button(self, text: str, size: str = "wide") -> str:
        return self.create_detached("action-button", {"text": text}, config={"size": size})

    def create_button(self, text: str, link: str | None = None, size: str = "wide") -> str:
        return self.create_detached("button", {"text": text, "link": link}, config={"size": size})

    def set_button_link(self, node_id: str, link: str) -> None:
        self.node(node_id, "button")
        self.update_node_data(node_id, link=link)

    def create_tour_map(self, geometries: Mapping[str, Any], webmap_resource_id: str | None = None) -> str:
        if webmap_resource_id is not None:
            self.resource(webmap_resource_id, "webmap")
            basemap = {"type": "resource", "value": webmap_resource_id}
        else:
            basemap = {"type": "name", "value": "worldImagery"}
        return self.create_detached("tour-map", {"geometries": dict(geometries), "mode": "2d", "basemap": basemap})

    def create_tour(
        self,
        map_node_id: str,
        places: list[dict[str, Any]],
        *,
        tour_type: str = "guided-tour",
        subtype: str = "media-focused",
        panel_position: str = "start",
        panel_size: str = "large",
        accent_color: str = TOUR_ACCENT_COLOR,
    ) -> str:
        self.node(map_node_id, "tour-map")
        for place in places:
            for key in ("media", "title"):
                if place.get(key) is not None:
                    self.node(place[key])
            for content_id in place.get("contents", []):
                self.node(content_id)
        data = {
            "type": tour_type,
            "subtype": subtype,
            "narrativePanelPosition": panel_position,
            "narrativePanelSize": panel_size,
            "map": map_node_id,
            "places": places,
            "accentColor": accent_color,
        }
        return self.create_detached("tour", data)

    # ------------------------------------------------------- resource factories

    def add_image_resource(
        self,
        src: str,
        width: int | None = None,
        height: int | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> str:
        """Return the image resource for `src`, creating it on first use.

        One picture referenced from several places yields one resource. Every
        remote reference is queued for transfer, duplicates included, so the
        transfer phase sees each discovery.
        """
        if not src:
            raise BuilderInvariantError("Image resource needs a source URL")
        key = normalize_source_url(src)
        resource_id = self._image_by_source.get(key)
        if resource_id is None:
            resource_id = self.add_resource(
                "image",
                {"src": src, "provider": "uri", "width": width, "height": height},
            )
            self._image_by_source[key] = resource_id
        if is_remote_source(src):
            self._queue_transfer(src, {"kind": "image", "resource": resource_id, **(context or {})})
        return resource_id

    def add_video_resource(self, src: str, provider: str = "uri", context: Mapping[str, Any] | None = None) -> str:
        if not src:
            raise BuilderInvariantError("Video resource needs a source URL")
        resource_id = self.add_resource("video", {"src": src, "provider": provider})
        if provider == "uri" and is_remote_source(src):
            self._queue_transfer(src, {"kind": "video", "resource": resource_id, **(context or {})})
        return resource_id

    def add_webmap_resource(
        self,
        item_id: str,
        item_type: str = "Web Map",
        initial_state: Mapping[str, Any] | None = None,
        resource_type: str = "minimal",
        reuse: bool = True,
    ) -> str:
        """Return the webmap resource for an item, creating it once and merging after.

        With `reuse=False` a distinct resource is always created (a swipe showing
        one map twice needs two independent layer states).

        Fields from `initial_state` (extent, center, viewpoint, zoom, mapLayers and
        widget flags) are promoted to the resource data. A legacy `scale` is never
        stored; the scale lives on `viewpoint`.
        """
        if not item_id:
            raise BuilderInvariantError("Webmap resource needs an item id")
        state = compact(initial_state or {})
        state.pop("scale", None)
        state.pop("initialState", None)
        existing = self._webmap_by_item.get(item_id) if reuse else None
        if existing is not None:
            resource = self.resource(existing, "webmap")
            for key, value in state.items():
                resource.data.setdefault(key, value)
            if resource_type == "default":
                resource.data["type"] = "default"
            return existing
        resource_id = self.add_resource(
            "webmap",
            {"type": resource_type, "itemId": item_id, "itemType": item_type, **state},
        )
        self._webmap_by_item.setdefault(item_id, resource_id)
        return resource_id

    def add_converter_metadata(
        self,
        classic_type: str,
        classic_metadata: Mapping[str, Any] | None = None,
        **extra: Any,
    ) -> str | None:
        """Record conversion provenance, merging into an existing metadata resource."""
        if self._suppress_metadata:
            return None
        for resource in self._graph.resources.values():
            if resource.type == "converter-metadata":
                resource.data["classicType"] = classic_type
                merged = dict(resource.data.get("classicMetadata") or {})
                for key, value in (classic_metadata or {}).items():
                    if isinstance(value, list) and isinstance(merged.get(key), list):
                        merged[key] = merged[key] + [v for v in value if v not in merged[key]]
                    else:
                        merged[key] = value
                resource.data["classicMetadata"] = merged
                resource.data.update(compact(extra))
                return resource.id
        data = {
            "classicType": classic_type,
            "typeConvertedTo": "storymap",
            "classicMetadata": dict(classic_metadata or {}),
            **extra,
        }
        return self.add_resource("converter-metadata", data)

    def register_replace_media_action(self, origin_id: str, slide_id: str, media_id: str) -> Action:
        self._ensure_open()
        self.node(origin_id)
        self.node(slide_id, SLIDE_NODE_TYPE)
        self.node(media_id)
        action = Action(
            origin=origin_id,
            trigger=ACTION_TRIGGER_APPLY,
            target=slide_id,
            event=ACTION_EVENT_REPLACE_MEDIA,
            data={"media": media_id},
        )
        self._graph.actions.append(action)
        return action

    # ---------------------------------------------------------------- transfers

    def _queue_transfer(self, src: str, context: Mapping[str, Any]) -> None:
        self._media_requests.append(TransferRequest(source_url=src, context=dict(context)))

    def apply_transfer_outcomes(self, outcomes: Mapping[str, TransferOutcome]) -> int:
        """Point transferred media resources at their local resource names.

        Args:
            outcomes: Transfer outcomes keyed by normalized source URL.

        Returns:
            Number of resources rewritten. Resources whose source was not
            transferred keep their remote `src`.
        """
        self._ensure_open()
        rewritten = 0
        for resource in self._graph.resources.values():
            if resource.type not in {"image", "video"}:
                continue
            src = resource.data.get("src")
            if not src:
                continue
            outcome = outcomes.get(normalize_source_url(src))
            if outcome is None or not outcome.transferred or not outcome.resource_name:
                continue
            resource.data["resourceId"] = outcome.resource_name
            resource.data["provider"] = "item-resource"
            resource.data.pop("src", None)
            rewritten += 1
        logger.debug("Applied transfer outcomes", rewritten=rewritten, outcomes=len(outcomes))
        return rewritten

    # -------------------------------------------------------------------- build

    def _normalize(self) -> None:
        for node in self._graph.nodes.values():
            if node.type == "webmap":
                if node.config is None:
                    node.config = {}
                node.config.setdefault("size", "standard")
                node.data.pop("scale", None)
            elif node.type == "text":
                node.data.setdefault("textAlignment", "start")
        for resource in self._graph.resources.values():
            if resource.type == "webmap":
                resource.data.pop("scale", None)
                state = resource.data.get("initialState")
                if isinstance(state, dict):
                    state.pop("scale", None)
        root = self._graph.nodes.get(self._graph.root) if self._graph.root else None
        if root is not None:
            for field in DEPRECATED_ROOT_FIELDS:
                root.data.pop(field, None)
            self._graph.nodes.pop(root.id)
            self._graph.nodes[root.id] = root

    def build(self) -> Graph:
        """Normalize the graph and hand ownership to the caller.

        Returns:
            The finished graph. The builder refuses any further mutation.

        Raises:
            BuilderInvariantError: If called twice or before a root exists.
        """
        self._ensure_open()
        if self._graph.root is None:
            raise BuilderInvariantError("Cannot build a graph without a story root")
        self._normalize()
        self._sealed = True
        graph = self._graph
        logger.debug(
            "Graph built",
            nodes=len(graph.nodes),
            resources=len(graph.resources),
            actions=len(graph.actions),
        )
        return graph
