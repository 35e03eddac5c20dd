"""Row packing for the 12-column grid.

Every consumer that renders a schema spatially (the editor canvas and the
paginated document renderer) packs rows through ``pack_rows`` so that both
break rows in exactly the same places.
"""

from typing import List, Sequence, Callable, Any, Dict, TypeVar

from clinicforms.schemas.builder import GRID_COLUMNS, normalize_width


T = TypeVar("T")


def element_width(element: Any) -> int:
    """Width of a typed element or a raw element mapping, clamped to 1..12."""
    if isinstance(element, dict):
        position = element.get("position") or {}
        return normalize_width(position.get("width", GRID_COLUMNS))
    return normalize_width(element.position.width)


def pack_rows(
    elements: Sequence[T],
    width_of: Callable[[T], int] = element_width,
) -> List[List[T]]:
    """
    Pack elements into rows left to right, wrapping like a fluid 12-column grid.

    An element that does not fit on the current row starts a new one; a
    row that reaches exactly 12 closes immediately; the last row may be
    under-full. Zero elements yield zero rows.
    """
    rows: List[List[T]] = []
    current_row: List[T] = []
    current_width = 0

    for element in elements:
        width = width_of(element)
        if current_width + width > GRID_COLUMNS:
            if current_row:
                rows.append(current_row)
            current_row = [element]
            current_width = width
        else:
            current_row.append(element)
            current_width += width

        if current_width == GRID_COLUMNS:
            rows.append(current_row)
            current_row = []
            current_width = 0

    if current_row:
        rows.append(current_row)

    return rows


def is_full_width_block(row: Sequence[T], width_of: Callable[[T], int] = element_width) -> bool:
    """A lone full-width element renders as a plain block, not a column row."""
    return len(row) == 1 and width_of(row[0]) == GRID_COLUMNS


def describe_canvas_layout(elements: Sequence[Any]) -> List[Dict[str, Any]]:
    """
    Row/column structure for the editor canvas.

    Each row is either ``{"kind": "block", "element_id": ...}`` or
    ``{"kind": "columns", "columns": [{"element_id": ..., "span": n}, ...]}``.
    """
    layout = []
    for index, row in enumerate(pack_rows(elements)):
        if is_full_width_block(row):
            layout.append({
                "row": index,
                "kind": "block",
                "element_id": _element_id(row[0]),
            })
        else:
            layout.append({
                "row": index,
                "kind": "columns",
                "columns": [
                    {"element_id": _element_id(el), "span": element_width(el)}
                    for el in row
                ],
            })
    return layout


def _element_id(element: Any) -> str:
    if isinstance(element, dict):
        return element.get("id")
    return element.id
