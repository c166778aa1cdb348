from typing import Optional, Tuple

from infrasync.compiler.render_hcl import render_hcl
from infrasync.compiler.synthesizer import ResourceSynthesizer
from infrasync.graph.model import GraphModel
from infrasync.ir.base import InfraIR
from infrasync.ir.naming import SuffixStrategy


def compile_to_hcl(graph: GraphModel, suffix_strategy: Optional[SuffixStrategy] = None) -> Tuple[InfraIR, str]:
    ir = ResourceSynthesizer(suffix_strategy=suffix_strategy).synthesize(graph)
    return ir, render_hcl(ir)
