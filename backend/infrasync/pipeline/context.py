from dataclasses import dataclass, field
from typing import List, Optional

from infrasync.graph.model import GraphModel
from infrasync.ir.base import InfraIR
from infrasync.pipeline.events import Diagnostic


@dataclass
class SyncState:
    # Authoritative editor state
    graph: GraphModel = field(default_factory=GraphModel)

    # Last state that synthesized or parsed cleanly
    ir: InfraIR = field(default_factory=InfraIR)
    text: str = ""

    # Typed but not yet parsed
    pending_text: Optional[str] = None

    diagnostics: List[Diagnostic] = field(default_factory=list)

    def add_diagnostic(self, diagnostic: Diagnostic):
        self.diagnostics.append(diagnostic)

    def clear_diagnostics(self):
        self.diagnostics.clear()
