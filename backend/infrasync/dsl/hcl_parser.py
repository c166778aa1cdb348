"""
HCL subset parser.

Recovers an InfraIR from hand-edited text. Only the subset the emitter
produces (plus common hand-written variations) is understood:

    resource|data "<type>" "<name>" { ... }
    provider|variable "<name>" { ... }

Other top-level blocks (terraform, output, locals, module, ...) are skipped.
Anything that cannot be brace-matched, or a token in a place where it
cannot belong, raises MalformedSyntax; the caller keeps its last good state.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Tuple

from infrasync.ir.base import (
    Block,
    InfraIR,
    Resource,
    DATA,
    PROVIDER,
    RESOURCE,
    VARIABLE,
    TWO_LABEL_KINDS,
)
from infrasync.ir.errors import MalformedSyntax
from infrasync.ir.naming import normalize_name

logger = logging.getLogger(__name__)

IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")
BARE_TOKEN_RE = re.compile(r'[^\s\[\]{},"]+')
NUMBER_RE = re.compile(r"-?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

ONE_LABEL_KINDS = {PROVIDER, VARIABLE}

ESCAPES = {
    '"': '"',
    "\\": "\\",
    "n": "\n",
    "t": "\t",
    "r": "\r",
}


@dataclass
class TopLevelBlock:
    word: str              # resource, provider, terraform, locals, ...
    labels: List[str]
    start: int             # offset of the block keyword
    end: int               # one past the closing brace
    body: str              # text between the braces, comments blanked


def parse_hcl(text: str) -> InfraIR:
    """Parse declarative text into a fresh InfraIR."""
    return HclParser(text).parse()


def top_level_blocks(text: str) -> List[TopLevelBlock]:
    """Locate every top-level block; offsets index into `text` itself."""
    return HclParser(text).scan()


def strip_comments(text: str) -> str:
    """
    Blank out `#`, `//` and `/* */` comments.

    Comment characters are replaced with spaces (newlines kept) so offsets
    and line numbers in later errors still point at the original text.
    Quote-aware: comment markers inside strings are left alone.
    """
    out = list(text)
    i = 0
    n = len(text)
    in_string = False

    while i < n:
        ch = text[i]

        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"' or ch == "\n":
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            i += 1
            continue

        if ch == "#" or text.startswith("//", i):
            while i < n and text[i] != "\n":
                out[i] = " "
                i += 1
            continue

        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise MalformedSyntax(
                    "unterminated block comment",
                    offset=i,
                    line=text.count("\n", 0, i) + 1,
                )
            for j in range(i, end + 2):
                if out[j] != "\n":
                    out[j] = " "
            i = end + 2
            continue

        i += 1

    return "".join(out)


class HclParser:
    def __init__(self, text: str):
        self.src = strip_comments(text or "")
        self.pos = 0

    # ---------- errors / cursor ----------

    def _error(self, message: str, offset: int = None) -> MalformedSyntax:
        offset = self.pos if offset is None else offset
        line = self.src.count("\n", 0, offset) + 1
        return MalformedSyntax(message, offset=offset, line=line)

    def _peek(self, end: int = None) -> str:
        end = len(self.src) if end is None else end
        if self.pos >= end:
            return ""
        return self.src[self.pos]

    def _skip_ws(self, end: int = None) -> None:
        end = len(self.src) if end is None else end
        while self.pos < end and self.src[self.pos].isspace():
            self.pos += 1

    def _read_ident(self, end: int = None) -> str:
        end = len(self.src) if end is None else end
        m = IDENT_RE.match(self.src, self.pos, end)
        if not m:
            return ""
        self.pos = m.end()
        return m.group(0)

    def _read_string(self, end: int = None) -> str:
        """Read a double-quoted string starting at the cursor and unescape it."""
        end = len(self.src) if end is None else end
        start = self.pos
        self.pos += 1
        chars = []

        while self.pos < end:
            ch = self.src[self.pos]
            if ch == "\\" and self.pos + 1 < end:
                nxt = self.src[self.pos + 1]
                chars.append(ESCAPES.get(nxt, ch + nxt))
                self.pos += 2
                continue
            if ch == '"':
                self.pos += 1
                return "".join(chars)
            if ch == "\n":
                break
            chars.append(ch)
            self.pos += 1

        raise self._error("unterminated string", start)

    def _match_brace(self, open_index: int, end: int = None) -> int:
        """Index of the `}` closing the `{` at open_index (quote-aware)."""
        end = len(self.src) if end is None else end
        depth = 0
        in_string = False
        i = open_index

        while i < end:
            ch = self.src[i]
            if in_string:
                if ch == "\\":
                    i += 2
                    continue
                if ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return i
            i += 1

        raise self._error("unbalanced '{'", open_index)

    # ---------- top level ----------

    def _top_level(self) -> Iterator[Tuple[str, List[str], List[bool], int, int, int]]:
        """(word, labels, quoted, start, open_index, close_index) per top-level block."""
        n = len(self.src)

        while True:
            self._skip_ws()
            if self.pos >= n:
                return

            start = self.pos
            word = self._read_ident()
            if not word:
                raise self._error(f"unexpected {self.src[self.pos]!r} at top level")

            labels, quoted = self._read_labels()
            if self._peek() != "{":
                raise self._error(f"expected '{{' after {word}")

            open_index = self.pos
            close_index = self._match_brace(open_index)
            yield word, labels, quoted, start, open_index, close_index
            self.pos = close_index + 1

    def parse(self) -> InfraIR:
        ir = InfraIR()

        for word, labels, quoted, start, open_index, close_index in self._top_level():
            if word in TWO_LABEL_KINDS or word in ONE_LABEL_KINDS:
                resource = self._build_resource(word, labels, quoted, start)
                self.pos = open_index + 1
                resource.properties, resource.blocks = self._parse_body(close_index)
                ir.add(resource)
            else:
                logger.debug("[PARSER] skipping top-level %s block", word)

        logger.debug("[PARSER] parsed %d declarations", len(ir))
        return ir

    def scan(self) -> List[TopLevelBlock]:
        """Top-level block spans, bodies left unparsed."""
        return [
            TopLevelBlock(
                word=word,
                labels=labels,
                start=start,
                end=close_index + 1,
                body=self.src[open_index + 1:close_index],
            )
            for word, labels, _, start, open_index, close_index in self._top_level()
        ]

    def _read_labels(self, end: int = None) -> Tuple[List[str], List[bool]]:
        labels: List[str] = []
        quoted: List[bool] = []
        while True:
            self._skip_ws(end)
            ch = self._peek(end)
            if ch == '"':
                labels.append(self._read_string(end))
                quoted.append(True)
            elif ch and IDENT_RE.match(ch):
                labels.append(self._read_ident(end))
                quoted.append(False)
            else:
                return labels, quoted

    def _build_resource(self, kind: str, labels: List[str], quoted: List[bool], start: int) -> Resource:
        expected = 2 if kind in TWO_LABEL_KINDS else 1
        if len(labels) != expected or not all(quoted):
            raise self._error(f"{kind} block needs {expected} quoted label(s)", start)

        if kind in TWO_LABEL_KINDS:
            type_name, raw_name = labels
            instance_name = normalize_name(raw_name)
            if not instance_name:
                raise self._error(f"{kind} name {raw_name!r} is empty once normalized", start)
            return Resource(kind=kind, type_name=type_name, instance_name=instance_name)

        return Resource(kind=kind, type_name=labels[0])

    # ---------- bodies ----------

    def _parse_body(self, end: int) -> Tuple[Dict[str, Any], List[Block]]:
        """Parse `key = value` pairs and nested blocks up to index `end`."""
        props: Dict[str, Any] = {}
        blocks: List[Block] = []

        while True:
            self._skip_ws(end)
            if self.pos >= end:
                break

            key_start = self.pos
            if self._peek(end) == '"':
                key = self._read_string(end)
                is_ident = False
            else:
                key = self._read_ident(end)
                is_ident = True
                if not key:
                    raise self._error(f"unexpected {self.src[self.pos]!r}")

            if is_ident:
                labels, quoted = self._read_labels(end)
                if self._peek(end) == "{":
                    blocks.append(self._parse_block(key, labels, end))
                    continue
                if labels:
                    raise self._error(f"expected '{{' after {key}", key_start)

            self._skip_ws(end)
            if self._peek(end) not in ("=", ":"):
                raise self._error(f"expected '=' after {key}")
            self.pos += 1
            props[key] = self._parse_value(end)

        self.pos = end
        return props, blocks

    def _parse_block(self, name: str, labels: List[str], end: int) -> Block:
        open_index = self.pos
        close_index = self._match_brace(open_index, end)
        self.pos = open_index + 1
        body, nested = self._parse_body(close_index)
        self.pos = close_index + 1
        return Block(name=name, body=body, blocks=nested, labels=labels)

    def _parse_value(self, end: int) -> Any:
        self._skip_ws(end)
        ch = self._peek(end)

        if not ch:
            raise self._error("missing value")
        if ch == '"':
            return self._read_string(end)
        if ch == "[":
            return self._parse_list(end)
        if ch == "{":
            return self._parse_map(end)
        return self._parse_bare(end)

    def _parse_list(self, end: int) -> List[Any]:
        start = self.pos
        self.pos += 1
        items: List[Any] = []

        while True:
            self._skip_ws(end)
            ch = self._peek(end)
            if not ch:
                raise self._error("unterminated list", start)
            if ch == "]":
                self.pos += 1
                return items
            items.append(self._parse_value(end))
            self._skip_ws(end)
            # separators are optional between map literals, trailing comma tolerated
            if self._peek(end) == ",":
                self.pos += 1

    def _parse_map(self, end: int) -> Dict[str, Any]:
        start = self.pos
        self.pos += 1
        mapping: Dict[str, Any] = {}

        while True:
            self._skip_ws(end)
            ch = self._peek(end)
            if not ch:
                raise self._error("unterminated map", start)
            if ch == "}":
                self.pos += 1
                return mapping

            if ch == '"':
                key = self._read_string(end)
            else:
                key = self._read_ident(end)
                if not key:
                    raise self._error(f"unexpected {ch!r} in map")

            self._skip_ws(end)
            if self._peek(end) in ("=", ":"):
                self.pos += 1
            mapping[key] = self._parse_value(end)

            self._skip_ws(end)
            if self._peek(end) == ",":
                self.pos += 1

    def _parse_bare(self, end: int) -> Any:
        m = BARE_TOKEN_RE.match(self.src, self.pos, end)
        if not m:
            raise self._error(f"unexpected {self.src[self.pos]!r}")
        if "(" in m.group(0):
            # jsonencode([...]), lookup(var.m, "k"), ... kept as opaque text
            start = self.pos
            self.pos = self._match_call(start, end)
            return self.src[start:self.pos]
        self.pos = m.end()
        return coerce_token(m.group(0))

    def _match_call(self, start: int, end: int) -> int:
        """Index just past a call expression starting at `start` (quote-aware)."""
        depth = 0
        in_string = False
        i = start

        while i < end:
            ch = self.src[i]
            if in_string:
                if ch == "\\":
                    i += 2
                    continue
                if ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch in "([{":
                depth += 1
            elif ch in ")]}":
                if depth == 0:
                    break
                depth -= 1
            elif depth == 0 and (ch.isspace() or ch == ","):
                break
            i += 1

        if depth or in_string:
            raise self._error("unbalanced '('", start)
        return i


def coerce_token(token: str) -> Any:
    if token == "true":
        return True
    if token == "false":
        return False
    if token == "null":
        return None
    if NUMBER_RE.fullmatch(token):
        if re.fullmatch(r"-?\d+", token):
            return int(token)
        return float(token)
    # identifiers and references (var.x, aws_vpc.main.id) stay opaque
    return token
