"""Graph engine — interactive visualization state for one canonical mind map.

Node ids are derived from tree position, so rebuilding from the same map and
layout always yields the same tables:

  central
  branch_{i}
  branch_{i}_point_{j}

Edge ids are "{source}->{target}".

Layouts:
  standard  every node visible, clicks do not collapse anything
  radial    points start hidden; clicking a branch flips its points, clicking
            the central node flips every point at once

The central toggle is a batch flip of each point. It does not remember
per-branch state, so central → branch → central leaves that branch the
opposite of where it started while the others are restored.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .narration import NarrationStep, NarrationWalk, Narrator, step_for
from .schemas import MindMap

logger = logging.getLogger(__name__)

CENTRAL_ID = "central"
COLLAPSED = "⊕"
EXPANDED = "⊖"


class Layout(str, Enum):
    STANDARD = "standard"
    RADIAL = "radial"


class Role(str, Enum):
    CENTRAL = "central"
    BRANCH = "branch"
    POINT = "point"


def branch_id(i: int) -> str:
    return f"branch_{i}"


def point_id(i: int, j: int) -> str:
    return f"{branch_id(i)}_point_{j}"


def edge_id(source: str, target: str) -> str:
    return f"{source}->{target}"


@dataclass(slots=True)
class GraphNode:
    id: str
    role: Role
    label: str
    base_label: Optional[str] = None
    parent: Optional[str] = None
    visible: bool = True
    highlighted: bool = False
    expanded: Optional[bool] = None  # branches in radial layout only


@dataclass(slots=True)
class GraphEdge:
    id: str
    source: str
    target: str
    visible: bool = True


@dataclass(slots=True)
class GraphState:
    layout: Layout
    nodes: dict[str, GraphNode] = field(default_factory=dict)
    edges: dict[str, GraphEdge] = field(default_factory=dict)

    def children(self, node_id: str) -> list[GraphNode]:
        return [n for n in self.nodes.values() if n.parent == node_id]

    def visible_nodes(self) -> list[GraphNode]:
        return [n for n in self.nodes.values() if n.visible]


def _indicator_label(base: str, expanded: bool) -> str:
    return f"{base} {EXPANDED if expanded else COLLAPSED}"


def build_graph(mindmap: MindMap, layout: Layout = Layout.STANDARD) -> GraphState:
    """Build node/edge tables from scratch."""
    radial = layout is Layout.RADIAL
    state = GraphState(layout=layout)
    state.nodes[CENTRAL_ID] = GraphNode(id=CENTRAL_ID, role=Role.CENTRAL, label=mindmap.central.label)

    for i, branch in enumerate(mindmap.branches):
        bid = branch_id(i)
        state.nodes[bid] = GraphNode(
            id=bid,
            role=Role.BRANCH,
            label=_indicator_label(branch.label, False) if radial else branch.label,
            base_label=branch.label if radial else None,
            parent=CENTRAL_ID,
            expanded=False if radial else None,
        )
        eid = edge_id(CENTRAL_ID, bid)
        state.edges[eid] = GraphEdge(id=eid, source=CENTRAL_ID, target=bid)

        for j, point in enumerate(branch.points):
            pid = point_id(i, j)
            state.nodes[pid] = GraphNode(
                id=pid, role=Role.POINT, label=point.label, parent=bid, visible=not radial,
            )
            eid = edge_id(bid, pid)
            state.edges[eid] = GraphEdge(id=eid, source=bid, target=pid, visible=not radial)

    return state


def narration_steps(mindmap: MindMap) -> list[NarrationStep]:
    """Flatten the map in narration order: central, then each branch and its points."""
    steps = [step_for(CENTRAL_ID, mindmap.central)]
    for i, branch in enumerate(mindmap.branches):
        steps.append(step_for(branch_id(i), branch))
        for j, point in enumerate(branch.points):
            steps.append(step_for(point_id(i, j), point))
    return steps


@dataclass(frozen=True, slots=True)
class GraphEvent:
    kind: str  # rebuild | toggle | highlight | clear
    node_id: Optional[str] = None
    cue: Optional[str] = None


Listener = Callable[[GraphEvent], None]


class GraphEngine:
    """Visualization + narration state for the currently displayed map."""

    def __init__(self, narrator: Narrator, layout: Layout = Layout.STANDARD) -> None:
        self.narrator = narrator
        self.layout = layout
        self.mindmap: MindMap | None = None
        self.state: GraphState | None = None
        self.manual_narration = False
        self.current_highlight: str | None = None
        self._steps: dict[str, NarrationStep] = {}
        self._walk: NarrationWalk | None = None
        self._walk_task: asyncio.Task | None = None
        self._draining: asyncio.Task | None = None
        self._manual_busy = False
        self._listeners: list[Listener] = []

    # ── Events ────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: str, node_id: str | None = None, cue: str | None = None) -> None:
        event = GraphEvent(kind=kind, node_id=node_id, cue=cue)
        for listener in list(self._listeners):
            listener(event)

    # ── Source map / layout ───────────────────────────────────────

    def show(self, mindmap: MindMap | None) -> GraphState | None:
        """Display a new map (or nothing), tearing down the previous one first."""
        self.dispose()
        self.mindmap = mindmap
        return self._rebuild()

    def set_layout(self, layout: Layout) -> GraphState | None:
        if layout is self.layout and self.state is not None:
            return self.state
        self.dispose()
        self.layout = layout
        return self._rebuild()

    def _rebuild(self) -> GraphState | None:
        if self.mindmap is None:
            self.state = None
            self._steps = {}
            return None
        self.state = build_graph(self.mindmap, self.layout)
        self._steps = {s.node_id: s for s in narration_steps(self.mindmap)}
        self._emit("rebuild")
        return self.state

    def dispose(self) -> None:
        """Cancel any narration and detach from the current state."""
        self._detach_walk()
        self.state = None
        self.current_highlight = None

    # ── Collapse / expand ─────────────────────────────────────────

    def toggle(self, node_id: str) -> bool:
        """Flip expansion for a branch or (batch) for the central node. Radial only."""
        state = self.state
        if state is None or state.layout is not Layout.RADIAL:
            return False
        node = state.nodes.get(node_id)
        if node is None or node.role is Role.POINT:
            return False

        if node.role is Role.CENTRAL:
            for point in (n for n in state.nodes.values() if n.role is Role.POINT):
                self._set_point_visible(state, point, not point.visible)
            for branch in (n for n in state.nodes.values() if n.role is Role.BRANCH):
                points = state.children(branch.id)
                expanded = any(p.visible for p in points) if points else not branch.expanded
                self._set_expanded(branch, expanded)
        else:
            for point in state.children(node.id):
                self._set_point_visible(state, point, not point.visible)
            self._set_expanded(node, not node.expanded)

        self._emit("toggle", node_id)
        return True

    @staticmethod
    def _set_point_visible(state: GraphState, point: GraphNode, visible: bool) -> None:
        point.visible = visible
        state.edges[edge_id(point.parent, point.id)].visible = visible

    @staticmethod
    def _set_expanded(branch: GraphNode, expanded: bool) -> None:
        branch.expanded = expanded
        branch.label = _indicator_label(branch.base_label or branch.label, expanded)

    # ── Highlight ─────────────────────────────────────────────────

    def _highlight(self, state: GraphState, step: NarrationStep) -> None:
        if self.state is not state:
            return
        state.nodes[step.node_id].highlighted = True
        self.current_highlight = step.node_id
        self._emit("highlight", step.node_id, step.cue)

    def _clear(self, state: GraphState, step: NarrationStep) -> None:
        # A step finishing after teardown must not touch the new view
        if self.state is not state:
            return
        state.nodes[step.node_id].highlighted = False
        if self.current_highlight == step.node_id:
            self.current_highlight = None
        self._emit("clear", step.node_id)

    # ── Narration ─────────────────────────────────────────────────

    @property
    def narrating(self) -> bool:
        return self._walk_task is not None and not self._walk_task.done()

    @property
    def busy(self) -> bool:
        draining = self._draining is not None and not self._draining.done()
        return self.narrating or self._manual_busy or draining

    def start_narration(self) -> asyncio.Task | None:
        """Start the sequential walk; returns its task (the running one if already engaged)."""
        if self.narrating:
            return self._walk_task
        state = self.state
        if state is None or self.mindmap is None or self._manual_busy:
            return None
        self.manual_narration = False
        walk = NarrationWalk(
            narration_steps(self.mindmap),
            self.narrator,
            highlight=lambda step: self._highlight(state, step),
            clear=lambda step: self._clear(state, step),
        )
        self._walk = walk
        self._walk_task = asyncio.get_running_loop().create_task(self._run_walk(walk, self._draining))
        self._walk_task.add_done_callback(self._walk_done)
        logger.info("Narration started (%d steps)", len(walk.steps))
        return self._walk_task

    @staticmethod
    async def _run_walk(walk: NarrationWalk, previous: asyncio.Task | None) -> bool:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        return await walk.run()

    @staticmethod
    def _walk_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Narration stopped by narrator failure: %s", exc)

    def _detach_walk(self) -> None:
        if self._walk is not None:
            self._walk.cancel()
        if self._walk_task is not None and not self._walk_task.done():
            # The step in flight still finishes; the next walk waits for it
            self._draining = self._walk_task
        self._walk = None
        self._walk_task = None

    def stop_narration(self) -> asyncio.Task | None:
        """Request cancellation; the step in flight finishes, nothing after it runs."""
        task = self._walk_task
        if self._walk is not None:
            logger.info("Narration stop requested")
        self._detach_walk()
        return task

    def set_manual(self, enabled: bool) -> bool:
        """Enable click-to-narrate; refused while the walk is engaged."""
        if enabled and self.narrating:
            return False
        self.manual_narration = enabled
        return True

    async def narrate_node(self, node_id: str) -> bool:
        """Speak exactly one node's text, no traversal."""
        state = self.state
        step = self._steps.get(node_id)
        if state is None or step is None or self.busy:
            return False
        self._manual_busy = True
        self._highlight(state, step)
        try:
            await self.narrator.speak(step.text)
        finally:
            self._clear(state, step)
            self._manual_busy = False
        return True

    async def click(self, node_id: str) -> bool:
        """Manual narration mode speaks the node; otherwise the click toggles it."""
        if self.manual_narration:
            return await self.narrate_node(node_id)
        return self.toggle(node_id)
