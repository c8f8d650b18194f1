"""Quick-action bindings.

A notification sent to chat may carry a small menu of follow-up actions.
Each entry is a binding: one action kind from a closed vocabulary plus
the arguments needed to invoke it later (target URL, merge strategy,
screenshot padding, ...). Bindings never hold credentials; they are run
with the credentials of whoever replies.

Vocabulary:
    link      return the bound URL, no network call
    react     POST a reaction named by the reply
    reply     POST the reply as a new comment
    base      PATCH a pull request's base branch
    merge     PUT a merge, also as ``squash`` or ``rebase``
    close     optionally comment, then PATCH the state to closed
    shot      capture a screenshot of part of a web page
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(str, Enum):
    """Closed set of quick-action kinds."""

    LINK = "link"
    REACT = "react"
    REPLY = "reply"
    BASE = "base"
    MERGE = "merge"
    CLOSE = "close"
    SHOT = "shot"


MergeMethod = Literal["merge", "squash", "rebase"]


class _Binding(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1, description="Target of the action")

    @property
    def command(self) -> str:
        """Name a chat user types to pick this binding."""
        return self.kind.value


class LinkAction(_Binding):
    kind: Literal[ActionKind.LINK] = ActionKind.LINK


class ReactAction(_Binding):
    kind: Literal[ActionKind.REACT] = ActionKind.REACT


class ReplyAction(_Binding):
    """Post the reply as a comment.

    Attributes:
        params: Extra fields merged into the request body, e.g. the
                ``in_reply_to`` id of a review comment thread.
    """

    kind: Literal[ActionKind.REPLY] = ActionKind.REPLY
    params: Dict[str, Any] = Field(default_factory=dict)


class BaseAction(_Binding):
    kind: Literal[ActionKind.BASE] = ActionKind.BASE


class MergeAction(_Binding):
    """Merge a pull request with one of GitHub's merge strategies."""

    kind: Literal[ActionKind.MERGE] = ActionKind.MERGE
    method: MergeMethod = "merge"

    @property
    def command(self) -> str:
        return self.method


class CloseAction(_Binding):
    """Close an issue or pull request.

    Attributes:
        comment_url: Comments endpoint used to post the reply, if any,
                     before closing.
    """

    kind: Literal[ActionKind.CLOSE] = ActionKind.CLOSE
    comment_url: str = Field(..., min_length=1)


class ShotAction(_Binding):
    """Capture an element of a web page.

    Attributes:
        selector: CSS selector of the element to capture.
        padding: Extra margin as ``[top, right, bottom, left]``; missing
                 trailing values default to 0.
    """

    kind: Literal[ActionKind.SHOT] = ActionKind.SHOT
    selector: str = Field(..., min_length=1)
    padding: List[float] = Field(default_factory=list, max_length=4)


ActionBinding = Annotated[
    Union[
        LinkAction,
        ReactAction,
        ReplyAction,
        BaseAction,
        MergeAction,
        CloseAction,
        ShotAction,
    ],
    Field(discriminator="kind"),
]

ReplyMenu = Mapping[str, ActionBinding]
"""Bindings of one notification keyed by command name."""


def build_menu(*bindings: ActionBinding) -> Dict[str, ActionBinding]:
    """Key bindings by the command that selects them.

    Raises:
        ValueError: If two bindings answer to the same command.
    """
    menu: Dict[str, ActionBinding] = {}
    for binding in bindings:
        if binding.command in menu:
            raise ValueError(f"duplicate quick action: {binding.command}")
        menu[binding.command] = binding
    return menu
