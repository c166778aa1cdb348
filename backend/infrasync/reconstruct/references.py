# backend/infrasync/reconstruct/references.py
"""
Reference extraction.

Synthesized text uses `${aws_x.name.attr}` interpolations; hand-written
text often uses bare `aws_x.name.attr` expressions, which the parser keeps
as opaque strings. Both forms are recognised here; `data.aws_x.name.attr`
reads a data source, not a managed resource, and is skipped.
"""

import re
from typing import Any, Iterator, List, Optional, Tuple

from infrasync.ir.naming import normalize_name

REFERENCE_RE = re.compile(
    r"(?<![A-Za-z0-9_])(?<!data\.)(aws_[a-z0-9_]+)\.([A-Za-z0-9_\-]+)\.([A-Za-z0-9_]+)"
)

Reference = Tuple[str, str, str]


def iter_strings(value: Any) -> Iterator[str]:
    """Every string inside a property value, depth first."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_strings(item)


def find_references(value: Any, type_name: Optional[str] = None) -> List[Reference]:
    """(type, normalized instance name, attribute) for every reference in `value`."""
    found = []
    for text in iter_strings(value):
        for m in REFERENCE_RE.finditer(text):
            if type_name and m.group(1) != type_name:
                continue
            found.append((m.group(1), normalize_name(m.group(2)), m.group(3)))
    return found


def first_reference(value: Any, type_name: str) -> Optional[str]:
    """Instance name of the first `type_name` reference in `value`."""
    refs = find_references(value, type_name)
    return refs[0][1] if refs else None
