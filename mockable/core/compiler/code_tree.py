"""
Region-tagged statement tree used by the emitter.

Generated code is built as nested nodes instead of text so that conditional
regions copied from the protocol (``if sys.platform == ...:``) can wrap
fields, members and reset statements alike without balancing directives by
hand. ``render`` is the only place that knows about indentation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

INDENT = "    "


@dataclass
class Line:
    text: str


@dataclass
class Block:
    """A compound statement: ``header`` ends with ``:`` and owns ``body``."""

    header: str
    body: List["Node"] = field(default_factory=list)
    decorators: List[str] = field(default_factory=list)


@dataclass
class Branch:
    """An ``if``/``elif``/``else`` chain; a ``None`` condition is the ``else`` arm."""

    clauses: List[Tuple[Optional[str], List["Node"]]]


Node = Union[Line, Block, Branch]


def blank() -> Line:
    return Line("")


def _trim(nodes: Sequence[Node]) -> List[Node]:
    out: List[Node] = []
    for node in nodes:
        if isinstance(node, Line) and not node.text:
            if not out or (isinstance(out[-1], Line) and not out[-1].text):
                continue
        out.append(node)
    while out and isinstance(out[-1], Line) and not out[-1].text:
        out.pop()
    return out


def _render_body(nodes: Sequence[Node], depth: int, lines: List[str]) -> None:
    body = _trim(nodes)
    if not body:
        lines.append(INDENT * depth + "pass")
        return
    for node in body:
        _render_node(node, depth, lines)


def _render_node(node: Node, depth: int, lines: List[str]) -> None:
    pad = INDENT * depth
    if isinstance(node, Line):
        lines.append(pad + node.text if node.text else "")
    elif isinstance(node, Block):
        for decorator in node.decorators:
            lines.append(f"{pad}@{decorator}")
        lines.append(pad + node.header)
        _render_body(node.body, depth + 1, lines)
    else:
        for i, (condition, body) in enumerate(node.clauses):
            if condition is None:
                lines.append(f"{pad}else:")
            elif i == 0:
                lines.append(f"{pad}if {condition}:")
            else:
                lines.append(f"{pad}elif {condition}:")
            _render_body(body, depth + 1, lines)


def render(nodes: Sequence[Node], depth: int = 0) -> str:
    lines: List[str] = []
    for node in _trim(nodes):
        _render_node(node, depth, lines)
    return "\n".join(lines) + "\n"
