# backend/infrasync/pipeline/controller.py
"""
Sync Controller

Keeps the GraphModel and the declarative text in step, in both directions:

    graph edit  -> synthesize -> emit -> publish (SYNTHESIS)
    text edit   -> debounce -> parse -> reconstruct -> synthesize -> emit -> publish (SYNTHESIS)

Published updates are tagged SYNTHESIS and are never parsed when the editor
echoes them back, so one edit causes at most one regeneration.
"""

import logging
import time
from typing import Any, Callable, Optional, Set, Union

from infrasync import config
from infrasync.compiler.merge import merge_unmanaged
from infrasync.compiler.render_hcl import render_hcl
from infrasync.compiler.synthesizer import ResourceSynthesizer
from infrasync.dsl.hcl_parser import parse_hcl
from infrasync.graph.model import EdgeStyle, GraphModel, Rect
from infrasync.ir.base import InfraIR
from infrasync.ir.errors import MalformedSyntax, NameCollision
from infrasync.pipeline.context import SyncState
from infrasync.pipeline.debounce import Debouncer
from infrasync.pipeline.events import Diagnostic, TextUpdate, UpdateOrigin
from infrasync.reconstruct.base import TopologyReconstructor
from infrasync.reconstruct.heuristics import HeuristicReconstructor

logger = logging.getLogger(__name__)

TextSink = Callable[[TextUpdate], None]


class SyncController:
    def __init__(
        self,
        graph: Optional[GraphModel] = None,
        synthesizer: Optional[ResourceSynthesizer] = None,
        reconstructor: Optional[TopologyReconstructor] = None,
        text_sink: Optional[TextSink] = None,
        debounce_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.state = SyncState(graph=graph or GraphModel())
        self.synthesizer = synthesizer or ResourceSynthesizer()
        self.reconstructor = reconstructor or HeuristicReconstructor()
        self.text_sink = text_sink

        if debounce_seconds is None:
            debounce_seconds = config.TEXT_DEBOUNCE_SECONDS
        self.debouncer = Debouncer(debounce_seconds, clock)

        # Published SYNTHESIS updates not yet echoed back by the editor
        self._in_flight: Set[str] = set()

        self.parse_count = 0
        self.synthesis_count = 0

    # ---------- state ----------

    @property
    def graph(self) -> GraphModel:
        return self.state.graph

    @property
    def ir(self) -> InfraIR:
        return self.state.ir

    @property
    def text(self) -> str:
        return self.state.text

    @property
    def diagnostics(self):
        return list(self.state.diagnostics)

    # ---------- graph edits ----------

    def edit_graph(self, mutate: Callable[[GraphModel], Any]) -> Any:
        """Apply one structural edit, then synthesize once."""
        self._drop_pending_text()
        result = mutate(self.state.graph)
        self._resynthesize()
        return result

    def add_node(self, kind, position, **kwargs) -> str:
        return self.edit_graph(lambda g: g.add_node(kind, position, **kwargs))

    def connect(self, source, target, style=EdgeStyle.SOLID) -> str:
        return self.edit_graph(lambda g: g.add_edge(source, target, style))

    def disconnect(self, edge_id: str) -> bool:
        return self._edit_if_changed(lambda g: g.remove_edge(edge_id))

    def remove_node(self, node_id: str) -> bool:
        return self._edit_if_changed(lambda g: g.remove_node(node_id))

    def relabel(self, node_id: str, label: str) -> bool:
        return self._edit_if_changed(lambda g: g.relabel(node_id, label))

    def move_node(self, node_id: str, position) -> bool:
        return self._edit_if_changed(lambda g: g.move_node(node_id, position))

    def resize(self, network_id: str, rect: Rect) -> bool:
        return self._edit_if_changed(lambda g: g.resize(network_id, rect))

    def _edit_if_changed(self, mutate: Callable[[GraphModel], bool]) -> bool:
        self._drop_pending_text()
        changed = mutate(self.state.graph)
        if changed:
            self._resynthesize()
        return changed

    # ---------- interactive drags ----------

    def begin_move(self, node_id: str) -> bool:
        return self.state.graph.begin_move(node_id)

    def begin_resize(self, network_id: str) -> bool:
        return self.state.graph.begin_resize(network_id)

    def drag_to(self, position) -> None:
        # geometry only: no containment, no synthesis
        self.state.graph.drag_to(position)

    def resize_to(self, rect: Rect) -> None:
        self.state.graph.resize_to(rect)

    def release(self) -> Optional[TextUpdate]:
        if not self.state.graph.release():
            return None
        self._drop_pending_text()
        return self._resynthesize()

    # ---------- text edits ----------

    def text_changed(self, update: Union[TextUpdate, str]) -> None:
        if isinstance(update, str):
            update = TextUpdate(text=update, origin=UpdateOrigin.USER)

        if update.origin is UpdateOrigin.SYNTHESIS:
            self._in_flight.discard(update.id)
            logger.debug("[SYNC] ignoring synthesized text %s", update.id)
            return

        if self.state.pending_text is None and update.text == self.state.text:
            # editors that drop the origin tag echo our own text back
            return

        self.state.pending_text = update.text
        self.debouncer.touch()

    def poll(self) -> bool:
        """Parse pending text once the typing has settled. True if a parse ran."""
        if not self.debouncer.ready():
            return False
        return self.flush()

    def flush(self) -> bool:
        """Parse pending text now, regardless of the quiescence delay."""
        text = self.state.pending_text
        self.debouncer.cancel()
        if text is None:
            return False
        self.state.pending_text = None
        self._apply_text(text)
        return True

    def _drop_pending_text(self) -> None:
        if self.state.pending_text is not None:
            logger.debug("[SYNC] graph edit supersedes unparsed text")
        self.state.pending_text = None
        self.debouncer.cancel()

    # ---------- passes ----------

    def _apply_text(self, text: str) -> Optional[TextUpdate]:
        self.parse_count += 1
        try:
            parsed = parse_hcl(text)
        except MalformedSyntax as e:
            logger.warning("[SYNC] parse failed, keeping last good state: %s", e)
            self.state.add_diagnostic(Diagnostic(stage="parse", message=e.message, line=e.line))
            return None

        self.state.graph = self.reconstructor.reconstruct(parsed)
        return self._resynthesize(parsed)

    def _resynthesize(self, parsed: Optional[InfraIR] = None) -> Optional[TextUpdate]:
        snapshot = self.state.graph.snapshot()
        try:
            ir = self.synthesizer.synthesize(snapshot)
        except NameCollision as e:
            logger.warning("[SYNC] synthesis failed, keeping last IR: %s", e)
            self.state.add_diagnostic(Diagnostic(stage="synthesis", message=str(e)))
            return None

        if parsed is not None:
            ir = merge_unmanaged(ir, parsed)

        self.synthesis_count += 1
        self.state.ir = ir
        self.state.text = render_hcl(ir)
        self.state.clear_diagnostics()
        return self._publish(self.state.text)

    def _publish(self, text: str) -> TextUpdate:
        update = TextUpdate(text=text, origin=UpdateOrigin.SYNTHESIS)
        self._in_flight.add(update.id)
        if self.text_sink is not None:
            self.text_sink(update)
        return update
