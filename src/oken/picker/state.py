"""Picker state machine: filtering, grouping, selection and scrolling.

Nothing here touches the terminal. `step` takes a state and a key and
returns the next state plus an outcome once the user confirms or cancels.
"""

from dataclasses import dataclass, replace
from enum import Enum

from oken.types import Host

UNTAGGED_GROUP = "untagged"


class Key(str, Enum):
    """Non-character keys the picker reacts to."""

    UP = "up"
    DOWN = "down"
    ENTER = "enter"
    BACKSPACE = "backspace"
    ESCAPE = "escape"
    INTERRUPT = "interrupt"


@dataclass(frozen=True)
class PickerItem:
    """A host joined with its most recent connection time."""

    host: Host
    last_connected: str | None = None

    @property
    def group(self) -> str | None:
        """First tag, which decides the group the host is listed under."""
        return self.host.tags[0] if self.host.tags else None

    @property
    def group_key(self) -> str | None:
        return self.group.lower() if self.group is not None else None


@dataclass(frozen=True)
class PickerState:
    query: str = ""
    selected: int = 0
    offset: int = 0


@dataclass(frozen=True)
class Confirmed:
    host: Host


@dataclass(frozen=True)
class Cancelled:
    pass


Outcome = Confirmed | Cancelled


@dataclass(frozen=True)
class Row:
    """One visible line: a group header or an index into the matched items."""

    header: str | None = None
    item: int | None = None


def sort_items(items: list[PickerItem]) -> list[PickerItem]:
    """Group by first tag (untagged last); recent hosts first, then by alias."""
    ordered = sorted(items, key=lambda i: i.host.alias)
    # Stable sorts: each pass keeps the order of the previous one for ties.
    ordered = sorted(ordered, key=lambda i: i.last_connected or "", reverse=True)
    return sorted(ordered, key=lambda i: (i.group_key is None, i.group_key or ""))


def build_items(hosts: list[Host], recent: dict[str, str] | None = None) -> list[PickerItem]:
    recent = recent or {}
    return sort_items([PickerItem(host=h, last_connected=recent.get(h.alias)) for h in hosts])


def matches(item: PickerItem, query: str) -> bool:
    if not query:
        return True

    host = item.host
    if query.startswith("#"):
        tag_query = query[1:].lower()
        return any(tag_query in tag.lower() for tag in host.tags)

    q = query.lower()
    fields = [host.alias, host.hostname or "", host.user or "", *host.tags]
    return any(q in field.lower() for field in fields)


def filter_items(items: list[PickerItem], query: str) -> list[PickerItem]:
    return [item for item in items if matches(item, query)]


def build_rows(matched: list[PickerItem]) -> list[Row]:
    """Lay out matched items, with a header at each group boundary.

    Headers are only shown when at least one visible host has a tag.
    """
    grouped = any(item.host.tags for item in matched)
    rows = []
    for i, item in enumerate(matched):
        if grouped and (i == 0 or item.group_key != matched[i - 1].group_key):
            rows.append(Row(header=item.group or UNTAGGED_GROUP))
        rows.append(Row(item=i))
    return rows


def row_of(rows: list[Row], selected: int) -> int:
    for i, row in enumerate(rows):
        if row.item == selected:
            return i
    return 0


def scroll_offset(offset: int, row: int, height: int) -> int:
    """Smallest change to offset that keeps row within [offset, offset + height)."""
    height = max(1, height)
    if row < offset:
        return row
    if row >= offset + height:
        return row - height + 1
    return offset


def settle(state: PickerState, items: list[PickerItem], height: int) -> PickerState:
    """Clamp the selection to the matched items and scroll it into view."""
    matched = filter_items(items, state.query)
    if not matched:
        return replace(state, selected=0, offset=0)

    selected = min(max(state.selected, 0), len(matched) - 1)
    row = row_of(build_rows(matched), selected)
    return replace(state, selected=selected, offset=scroll_offset(state.offset, row, height))


def step(
    state: PickerState,
    key: Key | str,
    items: list[PickerItem],
    height: int,
) -> tuple[PickerState, Outcome | None]:
    """Apply one key press. Plain strings are typed characters."""
    if isinstance(key, Key):
        if key is Key.ESCAPE or key is Key.INTERRUPT:
            return state, Cancelled()

        if key is Key.ENTER:
            matched = filter_items(items, state.query)
            if not matched:
                return state, None
            selected = min(state.selected, len(matched) - 1)
            return state, Confirmed(matched[selected].host)

        if key is Key.UP:
            state = replace(state, selected=state.selected - 1)
        elif key is Key.DOWN:
            state = replace(state, selected=state.selected + 1)
        elif key is Key.BACKSPACE:
            state = PickerState(query=state.query[:-1])
    elif key and key.isprintable():
        state = PickerState(query=state.query + key)

    return settle(state, items, height), None


def visible_rows(state: PickerState, items: list[PickerItem], height: int) -> tuple[list[PickerItem], list[Row]]:
    """Matched items and the slice of rows that fits the viewport."""
    matched = filter_items(items, state.query)
    rows = build_rows(matched)
    return matched, rows[state.offset : state.offset + max(1, height)]
