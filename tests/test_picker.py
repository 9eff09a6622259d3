"""Tests for the picker state machine."""

import random

import pytest
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from oken.errors import NoHostsError, PickerCancelled
from oken.picker import HostPicker
from oken.picker.state import (
    UNTAGGED_GROUP,
    Cancelled,
    Confirmed,
    Key,
    PickerState,
    build_items,
    build_rows,
    filter_items,
    row_of,
    scroll_offset,
    step,
    visible_rows,
)
from oken.types import Host, HostSource


def make_host(alias, hostname=None, user=None, tags=()):
    return Host(alias=alias, hostname=hostname, user=user, tags=tags, source=HostSource.STORE)


@pytest.fixture
def hosts():
    return [
        make_host("web1", "10.0.0.1", "deploy", ("prod", "web")),
        make_host("web2", "10.0.0.2", "deploy", ("prod", "web")),
        make_host("db1", "10.0.1.1", "postgres", ("DB",)),
        make_host("cache", "10.0.2.1", None, ("staging", "mydb-cache")),
        Host.from_alias("laptop"),
        Host.from_alias("nas"),
    ]


def aliases(items):
    return [i.host.alias for i in items]


class TestFilter:
    def test_empty_query_matches_all(self, hosts):
        items = build_items(hosts)
        assert len(filter_items(items, "")) == len(hosts)

    def test_tag_query(self, hosts):
        items = build_items(hosts)
        assert sorted(aliases(filter_items(items, "#db"))) == ["cache", "db1"]

    def test_tag_query_ignores_other_fields(self, hosts):
        items = build_items(hosts)
        assert filter_items(items, "#web1") == []

    def test_bare_hash_matches_tagged_only(self, hosts):
        items = build_items(hosts)
        assert sorted(aliases(filter_items(items, "#"))) == ["cache", "db1", "web1", "web2"]

    def test_plain_query_matches_alias_hostname_user_tags(self, hosts):
        items = build_items(hosts)
        assert aliases(filter_items(items, "LAP")) == ["laptop"]
        assert aliases(filter_items(items, "10.0.1")) == ["db1"]
        assert aliases(filter_items(items, "postgres")) == ["db1"]
        assert sorted(aliases(filter_items(items, "staging"))) == ["cache"]

    def test_no_match(self, hosts):
        assert filter_items(build_items(hosts), "zzz") == []


class TestSort:
    def test_grouped_by_first_tag_untagged_last(self, hosts):
        assert aliases(build_items(hosts)) == ["db1", "web1", "web2", "cache", "laptop", "nas"]

    def test_recent_first_within_group(self, hosts):
        recent = {"web2": "2026-01-02T00:00:00Z", "nas": "2026-01-01T00:00:00Z"}
        assert aliases(build_items(hosts, recent)) == [
            "db1", "web2", "web1", "cache", "nas", "laptop",
        ]

    def test_most_recent_first(self):
        hosts = [Host.from_alias(a) for a in ("a", "b", "c")]
        recent = {"a": "2026-01-01T00:00:00Z", "c": "2026-03-01T00:00:00Z"}
        assert aliases(build_items(hosts, recent)) == ["c", "a", "b"]


class TestRows:
    def test_headers_when_tagged(self, hosts):
        matched = build_items(hosts)
        rows = build_rows(matched)
        headers = [r.header for r in rows if r.header is not None]
        assert headers == ["DB", "prod", "staging", UNTAGGED_GROUP]
        assert len(rows) == len(matched) + 4

    def test_no_headers_when_untagged(self):
        matched = build_items([Host.from_alias("a"), Host.from_alias("b")])
        assert all(r.header is None for r in build_rows(matched))

    def test_row_of(self, hosts):
        rows = build_rows(build_items(hosts))
        assert row_of(rows, 0) == 1
        assert row_of(rows, 1) == 3


class TestScrollOffset:
    def test_within_window(self):
        assert scroll_offset(0, 3, 5) == 0

    def test_above_window(self):
        assert scroll_offset(4, 2, 5) == 2

    def test_below_window(self):
        assert scroll_offset(0, 7, 5) == 3


class TestStep:
    def test_typing_filters_and_resets_selection(self, hosts):
        items = build_items(hosts)
        state = PickerState(selected=3)
        state, outcome = step(state, "w", items, 10)
        assert outcome is None
        assert state.query == "w"
        assert state.selected == 0

    def test_backspace(self, hosts):
        items = build_items(hosts)
        state, _ = step(PickerState(query="we", selected=1), Key.BACKSPACE, items, 10)
        assert state.query == "w"
        assert state.selected == 0

    def test_backspace_on_empty(self, hosts):
        state, outcome = step(PickerState(), Key.BACKSPACE, build_items(hosts), 10)
        assert state.query == ""
        assert outcome is None

    def test_navigation_clamped(self, hosts):
        items = build_items(hosts)
        state, _ = step(PickerState(), Key.UP, items, 10)
        assert state.selected == 0
        for _ in range(20):
            state, _ = step(state, Key.DOWN, items, 10)
        assert state.selected == len(hosts) - 1

    def test_navigation_within_filtered_set(self, hosts):
        items = build_items(hosts)
        state = PickerState(query="web")
        for _ in range(5):
            state, _ = step(state, Key.DOWN, items, 10)
        assert state.selected == 1

    def test_enter_confirms_selected(self, hosts):
        items = build_items(hosts)
        state, _ = step(PickerState(query="web"), Key.DOWN, items, 10)
        _, outcome = step(state, Key.ENTER, items, 10)
        assert outcome == Confirmed(items[2].host)
        assert outcome.host.alias == "web2"

    def test_enter_with_no_match_does_nothing(self, hosts):
        state = PickerState(query="zzz")
        new_state, outcome = step(state, Key.ENTER, build_items(hosts), 10)
        assert outcome is None
        assert new_state == state

    @pytest.mark.parametrize("key", [Key.ESCAPE, Key.INTERRUPT])
    def test_cancel(self, hosts, key):
        _, outcome = step(PickerState(query="web"), key, build_items(hosts), 10)
        assert outcome == Cancelled()

    def test_key_names_typed_as_text_are_characters(self, hosts):
        state, outcome = step(PickerState(), "up", build_items(hosts), 10)
        assert outcome is None
        assert state.query == "up"

    def test_non_printable_ignored(self, hosts):
        state, _ = step(PickerState(query="a"), "\x07", build_items(hosts), 10)
        assert state.query == "a"


class TestScrollInvariant:
    def test_selected_row_always_visible(self):
        hosts = [
            make_host(f"h{i:02d}", tags=(f"group{i % 4}",) if i % 5 else ())
            for i in range(40)
        ]
        items = build_items(hosts)
        rng = random.Random(7)
        for height in (1, 2, 3, 7):
            state = PickerState()
            for _ in range(300):
                key = rng.choice([Key.UP, Key.DOWN, Key.DOWN])
                state, _ = step(state, key, items, height)
                matched = filter_items(items, state.query)
                row = row_of(build_rows(matched), state.selected)
                assert state.offset <= row < state.offset + height

    def test_visible_rows_contains_selection(self, hosts):
        items = build_items(hosts)
        state = PickerState()
        for _ in range(4):
            state, _ = step(state, Key.DOWN, items, 3)
        matched, rows = visible_rows(state, items, 3)
        assert len(rows) == 3
        assert state.selected in [r.item for r in rows]
        assert matched[state.selected].host.alias == "laptop"


class TestHostPicker:
    def test_empty_host_list_is_an_error(self):
        with pytest.raises(NoHostsError):
            HostPicker([])

    def run_with_keys(self, hosts, keys, initial_query=""):
        with create_pipe_input() as inp:
            inp.send_text(keys)
            picker = HostPicker(hosts, initial_query=initial_query, input=inp, output=DummyOutput())
            return picker.run()

    def test_type_and_confirm(self, hosts):
        assert self.run_with_keys(hosts, "lapt\r").alias == "laptop"

    def test_initial_query(self, hosts):
        assert self.run_with_keys(hosts, "\r", initial_query="nas").alias == "nas"

    def test_ctrl_c_cancels(self, hosts):
        with pytest.raises(PickerCancelled):
            self.run_with_keys(hosts, "\x03")

    def test_enter_with_no_match_keeps_running(self, hosts):
        # Enter on an empty list is ignored; backspacing restores the match.
        assert self.run_with_keys(hosts, "nasz\r\x7f\r").alias == "nas"
