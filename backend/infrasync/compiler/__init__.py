# Compiler module
# Graph -> IR synthesis and IR -> text rendering

from infrasync.compiler.synthesizer import (
    ResourceSynthesizer,
    SynthesisResult,
    synthesize,
)
from infrasync.compiler.render_hcl import render_hcl
from infrasync.compiler.compiler import compile_to_hcl

__all__ = [
    "ResourceSynthesizer",
    "SynthesisResult",
    "synthesize",
    "render_hcl",
    "compile_to_hcl",
]
