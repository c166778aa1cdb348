# backend/infrasync/compiler/render_hcl.py
"""
HCL Renderer

Turns an InfraIR into declarative text. Pure and deterministic:
the same IR always renders to the same bytes.

Layout:
- variables, providers, data blocks, resources (IR order within each)
- one blank line between top-level blocks, text ends with a newline
- two spaces of indentation per nesting level
"""

import re
from typing import Any, List

from infrasync.ir.base import InfraIR, Block, Resource, TWO_LABEL_KINDS

IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*$")
INDENT = "  "


def render_hcl(ir: InfraIR) -> str:
    chunks = [render_resource(resource) for resource in ir]
    if not chunks:
        return ""
    return "\n".join(chunks)


def render_resource(resource: Resource) -> str:
    if resource.kind in TWO_LABEL_KINDS:
        header = (
            f"{resource.kind} {_quote(resource.type_name)} "
            f"{_quote(resource.instance_name)} {{"
        )
    else:
        header = f"{resource.kind} {_quote(resource.type_name)} {{"

    lines = [header]
    lines.extend(_render_body(resource.properties, resource.blocks, 1))
    lines.append("}")
    return "\n".join(lines) + "\n"


def _render_body(properties: dict, blocks: List[Block], level: int) -> List[str]:
    lines = []
    for key, value in properties.items():
        lines.append(_render_property(key, value, level))
    for block in blocks:
        lines.extend(_render_block(block, level))
    return lines


def _render_block(block: Block, level: int) -> List[str]:
    indent = INDENT * level
    labels = "".join(f" {_quote(label)}" for label in block.labels)
    lines = [f"{indent}{block.name}{labels} {{"]
    lines.extend(_render_body(block.body, block.blocks, level + 1))
    lines.append(f"{indent}}}")
    return lines


def _render_property(key: str, value: Any, level: int) -> str:
    return f"{INDENT * level}{_render_key(key)} = {_render_value(value, level)}"


def _render_value(value: Any, level: int) -> str:
    if isinstance(value, list):
        return _render_list(value, level)
    if isinstance(value, dict):
        return _render_map(value, level)
    return render_scalar(value)


def _render_list(items: list, level: int) -> str:
    if not items:
        return "[]"
    if all(_is_scalar(item) for item in items):
        return "[" + ", ".join(render_scalar(item) for item in items) + "]"

    # Maps (and nested lists) get one element per line
    inner = INDENT * (level + 1)
    lines = ["["]
    for item in items:
        lines.append(f"{inner}{_render_value(item, level + 1)}")
    lines.append(f"{INDENT * level}]")
    return "\n".join(lines)


def _render_map(mapping: dict, level: int) -> str:
    if not mapping:
        return "{}"
    lines = ["{"]
    for key, value in mapping.items():
        lines.append(_render_property(key, value, level + 1))
    lines.append(f"{INDENT * level}}}")
    return "\n".join(lines)


def _render_key(key: str) -> str:
    return key if IDENT_RE.match(key) else _quote(key)


def _is_scalar(value: Any) -> bool:
    return not isinstance(value, (list, dict))


def render_scalar(value: Any) -> str:
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if value is None:
        return "null"
    return _quote(str(value))


def _quote(text: str) -> str:
    """Double-quote a string. `${...}` interpolations pass through untouched."""
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'
