# File: crudgen/splicer.py
"""
crudgen - Source Splicer
========================
Line-based editing of the service module.

Two independent edits are applied to ``main.py``:

1. **Block splice**: the per-table CRUD block (models + handlers) lives
   between its sentinel marker and the next marker, or the insertion point
   of the ``create_app`` entry point.  ``splice`` removes the old block for
   a marker and inserts the new one directly above the entry point, so

       splice(splice(T, A, m), B, m) == splice(T, B, m)

2. **Route splice**: the five ``add_api_route`` registrations for the
   table are removed by exact path segment and re-inserted after the first
   matching anchor inside ``create_app``.

Both operations are pure ``str -> str`` functions; file I/O belongs to the
generator.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from crudgen.errors import AnchorNotFoundError
from crudgen.utils import leading_whitespace, reindent_lines

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.splicer")

# ---------------------------------------------------------------------------
# Markers & anchors
# ---------------------------------------------------------------------------

MARKER_PREFIX: str = "# Generated by crudgen for table "
MARKER_SUFFIX: str = " - DO NOT EDIT MANUALLY"
ENTRY_POINT_SIGNATURE: str = "def create_app("
ROUTER_VARIABLE: str = "api"

_MARKER_RE: re.Pattern[str] = re.compile(
    r"^\s*# Generated by crudgen for table (?P<table>\S+) - DO NOT EDIT MANUALLY\s*$"
)
_ENTRY_POINT_RE: re.Pattern[str] = re.compile(r"^(?:async\s+)?def create_app\(")
_DECORATOR_RE: re.Pattern[str] = re.compile(r"^@")

_DB_ROUTE_RE: re.Pattern[str] = re.compile(
    rf"^\s*{ROUTER_VARIABLE}\.add_api_route\(\s*[\"']/db[\"']"
)
_ROUTER_DECLARATION_RE: re.Pattern[str] = re.compile(
    rf"^\s*{ROUTER_VARIABLE}\s*=\s*APIRouter\(.*Depends\(\s*require_api_key\s*\).*\)\s*$"
)
_ROUTER_SCOPE_RE: re.Pattern[str] = re.compile(rf"^\s*{ROUTER_VARIABLE}\s*=\s*APIRouter\(")
_ROUTE_CALL_RE: re.Pattern[str] = re.compile(rf"^\s*{ROUTER_VARIABLE}\.add_api_route\(")


def block_marker(table_name: str) -> str:
    """
    The sentinel line heading a generated block.

    Examples:
        >>> block_marker("users_table")
        '# Generated by crudgen for table users_table - DO NOT EDIT MANUALLY'
    """
    return f"{MARKER_PREFIX}{table_name}{MARKER_SUFFIX}"


# ---------------------------------------------------------------------------
# Source layout
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GeneratedBlockSpan:
    """Half-open line range ``[start, end)`` of one generated block."""

    table_name: str
    marker: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class SourceLayout:
    """Line-indexed view of a service module."""

    lines: Tuple[str, ...]
    trailing_newline: bool
    blocks: Tuple[GeneratedBlockSpan, ...]
    entry_index: Optional[int]
    insertion_index: Optional[int]

    @property
    def has_entry_point(self) -> bool:
        return self.entry_index is not None

    def find_block(self, marker: str) -> Optional[GeneratedBlockSpan]:
        marker = marker.strip()
        for span in self.blocks:
            if span.marker == marker:
                return span
        return None

    def has_marker(self, marker: str) -> bool:
        return self.find_block(marker) is not None

    def render(self, lines: Sequence[str]) -> str:
        """Join *lines* back, keeping the trailing-newline state."""
        text: str = "\n".join(lines)
        return text + "\n" if self.trailing_newline else text


def _split_lines(text: str) -> Tuple[List[str], bool]:
    lines: List[str] = text.split("\n")
    trailing: bool = text.endswith("\n")
    if trailing:
        lines.pop()
    return lines, trailing


def parse_source(text: str) -> SourceLayout:
    """
    Parse *text* into a ``SourceLayout``.

    The insertion point is the first top-level ``def create_app(`` line,
    moved up over decorator lines directly above it.
    """
    lines, trailing = _split_lines(text)

    entry_index: Optional[int] = None
    for index, line in enumerate(lines):
        if _ENTRY_POINT_RE.match(line):
            entry_index = index
            break

    insertion_index: Optional[int] = entry_index
    if insertion_index is not None:
        while insertion_index > 0 and _DECORATOR_RE.match(lines[insertion_index - 1]):
            insertion_index -= 1

    limit: int = insertion_index if insertion_index is not None else len(lines)
    marker_positions: List[Tuple[int, str]] = []
    for index, line in enumerate(lines):
        match = _MARKER_RE.match(line)
        if match is None:
            continue
        if index >= limit:
            logger.warning(
                "Ignoring marker for '%s' at line %d: it follows the entry point.",
                match.group("table"),
                index + 1,
            )
            continue
        marker_positions.append((index, match.group("table")))

    blocks: List[GeneratedBlockSpan] = []
    for position, (start, table_name) in enumerate(marker_positions):
        if position + 1 < len(marker_positions):
            end: int = marker_positions[position + 1][0]
        else:
            end = limit
        blocks.append(
            GeneratedBlockSpan(
                table_name=table_name,
                marker=block_marker(table_name),
                start=start,
                end=end,
            )
        )

    return SourceLayout(
        lines=tuple(lines),
        trailing_newline=trailing,
        blocks=tuple(blocks),
        entry_index=entry_index,
        insertion_index=insertion_index,
    )


# ---------------------------------------------------------------------------
# Block splice
# ---------------------------------------------------------------------------


def _block_lines(block: str, marker: str) -> List[str]:
    lines: List[str] = block.strip("\n").split("\n") if block.strip() else []
    if not lines or lines[0].strip() != marker:
        lines.insert(0, marker)

    for line in lines:
        if _ENTRY_POINT_RE.match(line):
            raise ValueError(
                f"Generated block must not contain the entry point ({ENTRY_POINT_SIGNATURE}...)."
            )
    for line in lines[1:]:
        if _MARKER_RE.match(line):
            raise ValueError("Generated block must not contain another marker line.")
    return lines


def remove_block(existing: str, marker: str) -> str:
    """Remove the block headed by *marker*; a missing block is a no-op."""
    layout: SourceLayout = parse_source(existing)
    span: Optional[GeneratedBlockSpan] = layout.find_block(marker)
    if span is None:
        return existing
    lines: List[str] = list(layout.lines)
    del lines[span.start:span.end]
    logger.debug("Removed block '%s' (lines %d-%d).", span.table_name, span.start + 1, span.end)
    return layout.render(lines)


def splice(existing: str, block: str, marker: str) -> str:
    """
    Replace (or insert) the block for *marker* directly above the entry point.

    Raises:
        AnchorNotFoundError: *existing* has no ``create_app`` entry point.
        ValueError: *block* contains an entry point or a foreign marker.
    """
    marker = marker.strip()
    if not parse_source(existing).has_entry_point:
        raise AnchorNotFoundError(ENTRY_POINT_SIGNATURE)

    new_lines: List[str] = _block_lines(block, marker)
    layout: SourceLayout = parse_source(remove_block(existing, marker))
    if layout.insertion_index is None:
        raise AnchorNotFoundError(ENTRY_POINT_SIGNATURE)

    lines: List[str] = list(layout.lines)
    lines[layout.insertion_index:layout.insertion_index] = new_lines + [""]
    logger.debug(
        "Inserted %d line(s) for '%s' at line %d.",
        len(new_lines),
        marker,
        layout.insertion_index + 1,
    )
    return layout.render(lines)


# ---------------------------------------------------------------------------
# Route splice
# ---------------------------------------------------------------------------


class RouteAnchor(str, Enum):
    """Where route registrations were inserted, in priority order."""

    DB_ROUTE = "db_route"
    ROUTER_DECLARATION = "router_declaration"
    ROUTER_SCOPE = "router_scope"


@dataclass(frozen=True, slots=True)
class RouteSpliceResult:
    text: str
    anchor: Optional[RouteAnchor] = None
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.warning is None


def _route_registration_re(route_name: str) -> re.Pattern[str]:
    # api routes for "/orders" or "/orders/...", never "/orders_archive" or app-level routes.
    return re.compile(
        rf"^\s*{ROUTER_VARIABLE}\.add_api_route\(\s*([\"'])/"
        + re.escape(route_name)
        + r"(?=[\"'/])"
    )


def _statement_end(lines: Sequence[str], index: int) -> int:
    """Index of the last line of the call starting at *index*."""
    depth: int = 0
    for position in range(index, len(lines)):
        depth += lines[position].count("(") - lines[position].count(")")
        if depth <= 0:
            return position
    return index


def _find_route_anchor(lines: Sequence[str]) -> Optional[Tuple[RouteAnchor, int, str]]:
    """Return ``(anchor, insert_after, indent)`` for the first matching anchor."""
    for index, line in enumerate(lines):
        if _DB_ROUTE_RE.match(line):
            return RouteAnchor.DB_ROUTE, _statement_end(lines, index), leading_whitespace(line)

    for index, line in enumerate(lines):
        if _ROUTER_DECLARATION_RE.match(line):
            return RouteAnchor.ROUTER_DECLARATION, index, leading_whitespace(line)

    for index, line in enumerate(lines):
        if not _ROUTER_SCOPE_RE.match(line):
            continue
        for follow in range(index + 1, len(lines)):
            if _ROUTE_CALL_RE.match(lines[follow]):
                return (
                    RouteAnchor.ROUTER_SCOPE,
                    _statement_end(lines, follow),
                    leading_whitespace(lines[follow]),
                )
        break
    return None


def splice_routes(
    existing: str,
    route_lines: Sequence[str],
    route_name: str,
) -> RouteSpliceResult:
    """
    Replace the route registrations for ``/<route_name>``.

    When no anchor is found the text is returned unchanged with a warning;
    the caller reports the lines to add by hand.
    """
    lines, trailing = _split_lines(existing)
    pattern: re.Pattern[str] = _route_registration_re(route_name)
    kept: List[str] = [line for line in lines if not pattern.search(line)]

    found = _find_route_anchor(kept)
    if found is None:
        warning: str = (
            f"Could not find a route anchor for '/{route_name}'; "
            "add the route registrations to create_app() manually."
        )
        logger.warning(warning)
        return RouteSpliceResult(text=existing, anchor=None, warning=warning)

    anchor, insert_after, indent = found
    removed: int = len(lines) - len(kept)
    kept[insert_after + 1:insert_after + 1] = reindent_lines(route_lines, indent)
    logger.debug(
        "Spliced %d route(s) for '/%s' at %s (replaced %d).",
        len(route_lines),
        route_name,
        anchor.value,
        removed,
    )

    text: str = "\n".join(kept)
    return RouteSpliceResult(text=text + "\n" if trailing else text, anchor=anchor)


def describe_layout(layout: SourceLayout) -> Dict[str, object]:
    """Summary used by ``--dry-run`` reporting."""
    return {
        "entry_point_line": None if layout.entry_index is None else layout.entry_index + 1,
        "blocks": [span.table_name for span in layout.blocks],
    }
