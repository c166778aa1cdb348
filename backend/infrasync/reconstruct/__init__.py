# Reconstruct module
# Text -> IR -> GraphModel, isolated behind one interface so a format that
# embeds topology metadata can replace the heuristics

from infrasync.reconstruct.base import TopologyReconstructor
from infrasync.reconstruct.heuristics import HeuristicReconstructor, reconstruct

__all__ = ["TopologyReconstructor", "HeuristicReconstructor", "reconstruct"]
