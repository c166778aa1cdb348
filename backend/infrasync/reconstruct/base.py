from abc import ABC, abstractmethod

from infrasync.graph.model import GraphModel
from infrasync.ir.base import InfraIR


class TopologyReconstructor(ABC):
    """Infers a visual topology from parsed declarations."""

    name: str

    @abstractmethod
    def reconstruct(self, ir: InfraIR) -> GraphModel:
        """
        Must:
        - return a fresh GraphModel
        - ignore declarations it does not recognise
        - NEVER raise on unexpected input
        """
        pass
