"""Quick-action replay for chat replies.

This module lets a chat user act on a notification by replying to it:
- actions: the closed vocabulary of bindable actions and menu building
- registry: bounded, expiring table of menus per notification
- dispatcher: selects and runs one action from a reply
- markdown: turns chat content into a GitHub comment body
"""

from .actions import (
    ActionBinding,
    ActionKind,
    BaseAction,
    CloseAction,
    LinkAction,
    MergeAction,
    ReactAction,
    ReplyAction,
    ReplyMenu,
    ShotAction,
    build_menu,
)
from .capture import BoundingBox, CaptureError, PageCapture, pad_box
from .dispatcher import REACTIONS, ActionDispatcher, ActionOutcome
from .markdown import INDICATOR, MediaTransformer, is_bridge_comment, render_comment
from .registry import ReplyRegistry

__all__ = [
    "INDICATOR",
    "REACTIONS",
    "ActionBinding",
    "ActionDispatcher",
    "ActionKind",
    "ActionOutcome",
    "BaseAction",
    "BoundingBox",
    "CaptureError",
    "CloseAction",
    "LinkAction",
    "MediaTransformer",
    "MergeAction",
    "PageCapture",
    "ReactAction",
    "ReplyAction",
    "ReplyMenu",
    "ReplyRegistry",
    "ShotAction",
    "build_menu",
    "is_bridge_comment",
    "pad_box",
    "render_comment",
]
