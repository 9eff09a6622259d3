"""Full-screen host picker built on prompt_toolkit."""

import logging
import sys

from prompt_toolkit.application import Application
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.key_binding import KeyBindings, KeyPressEvent
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.output import create_output
from prompt_toolkit.styles import Style

from oken.errors import NoHostsError, PickerCancelled
from oken.picker.state import (
    Confirmed,
    Key,
    PickerItem,
    PickerState,
    build_items,
    settle,
    step,
    visible_rows,
)
from oken.timefmt import format_relative_time
from oken.types import Host

logger = logging.getLogger(__name__)

# Search line + separator
CHROME_LINES = 2
# How long to wait after ESC for the rest of an escape sequence.
KEY_TIMEOUT = 0.05

STYLE = Style.from_dict(
    {
        "search": "#ffffff",
        "count": "#808080",
        "border": "#606060",
        "group": "#808080 bold",
        "selected": "bg:#ffffff #000000 bold",
    }
)


def format_item(item: PickerItem, selected: bool) -> str:
    host = item.host
    prefix = "> " if selected else "  "
    tags = f"[{', '.join(host.tags)}]" if host.tags else ""
    when = format_relative_time(item.last_connected) if item.last_connected else ""
    return f"{prefix}{host.alias:<16} {host.target:<24} {tags:<20} {when}".rstrip()


class HostPicker:
    """Interactive picker returning the chosen host.

    The terminal is switched to raw mode and the alternate screen only
    while `run` executes; prompt_toolkit restores it on every exit path.
    """

    def __init__(
        self,
        hosts: list[Host],
        recent: dict[str, str] | None = None,
        initial_query: str = "",
        input=None,
        output=None,
    ):
        if not hosts:
            raise NoHostsError(
                "no hosts found in ~/.ssh/config or hosts.yaml. Add one with 'oken host add'."
            )
        self.items = build_items(hosts, recent)
        self.state = PickerState(query=initial_query)
        self._input = input
        self._output = output
        self._app: Application | None = None

    def _size(self) -> tuple[int, int]:
        if self._app is None:
            return 24, 80
        size = self._app.output.get_size()
        return size.rows, size.columns

    def list_height(self) -> int:
        rows, _ = self._size()
        return max(1, rows - CHROME_LINES)

    def _search_line(self) -> StyleAndTextTuples:
        _, width = self._size()
        matched, _ = visible_rows(self.state, self.items, self.list_height())
        search = f"  Search: {self.state.query}█"
        count = f"{len(matched)} / {len(self.items)} hosts"
        padding = max(1, width - len(search) - len(count) - 2)
        return [
            ("class:search", search),
            ("", " " * padding),
            ("class:count", count),
        ]

    def _host_lines(self) -> StyleAndTextTuples:
        _, width = self._size()
        matched, rows = visible_rows(self.state, self.items, self.list_height())

        lines: StyleAndTextTuples = []
        for row in rows:
            if row.header is not None:
                lines.append(("class:group", f" {row.header}"[:width]))
            else:
                is_selected = row.item == self.state.selected
                text = format_item(matched[row.item], is_selected)[:width]
                if is_selected:
                    lines.append(("class:selected", text.ljust(width)))
                else:
                    lines.append(("", text))
            lines.append(("", "\n"))
        return lines[:-1]

    def _dispatch(self, event: KeyPressEvent, key: Key | str) -> None:
        self.state, outcome = step(self.state, key, self.items, self.list_height())
        if outcome is not None:
            event.app.exit(result=outcome)

    def _key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("up")
        def _up(event):
            self._dispatch(event, Key.UP)

        @kb.add("down")
        def _down(event):
            self._dispatch(event, Key.DOWN)

        @kb.add("enter")
        def _enter(event):
            self._dispatch(event, Key.ENTER)

        @kb.add("backspace")
        def _backspace(event):
            self._dispatch(event, Key.BACKSPACE)

        @kb.add("escape", eager=True)
        def _escape(event):
            self._dispatch(event, Key.ESCAPE)

        @kb.add("c-c")
        def _interrupt(event):
            self._dispatch(event, Key.INTERRUPT)

        @kb.add(Keys.Any)
        def _char(event):
            if event.data and event.data.isprintable():
                self._dispatch(event, event.data)

        return kb

    def _build_app(self) -> Application:
        layout = Layout(
            HSplit(
                [
                    Window(FormattedTextControl(self._search_line, show_cursor=False), height=1),
                    Window(char="─", height=1, style="class:border"),
                    Window(FormattedTextControl(self._host_lines, show_cursor=False)),
                ]
            )
        )
        app = Application(
            layout=layout,
            key_bindings=self._key_bindings(),
            style=STYLE,
            full_screen=True,
            input=self._input,
            # Draw on stderr so stdout stays clean for scripts.
            output=self._output or create_output(stdout=sys.stderr),
        )
        app.ttimeoutlen = KEY_TIMEOUT
        return app

    def run(self) -> Host:
        """Show the picker. Raises PickerCancelled if the user backs out."""
        self._app = self._build_app()
        self.state = settle(self.state, self.items, self.list_height())
        try:
            outcome = self._app.run()
        finally:
            self._app = None

        if isinstance(outcome, Confirmed):
            logger.debug(f"Picked {outcome.host.alias}")
            return outcome.host
        raise PickerCancelled("cancelled")


def run_picker(
    hosts: list[Host],
    recent: dict[str, str] | None = None,
    initial_query: str | None = None,
) -> Host:
    return HostPicker(hosts, recent, initial_query or "").run()
