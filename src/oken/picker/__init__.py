"""Interactive host picker."""

from oken.picker.app import HostPicker, run_picker
from oken.picker.state import (
    Cancelled,
    Confirmed,
    Key,
    PickerItem,
    PickerState,
    build_items,
    filter_items,
    step,
)

__all__ = [
    "Cancelled",
    "Confirmed",
    "HostPicker",
    "Key",
    "PickerItem",
    "PickerState",
    "build_items",
    "filter_items",
    "run_picker",
    "step",
]
