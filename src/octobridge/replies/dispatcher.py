"""Quick-action dispatcher.

This module replays a chat user's reply to a notification as exactly one
GitHub action from that notification's menu.

Selecting the action:
- A reply starting with the command prefix (``/merge Fix bug``) names the
  command explicitly; the rest of the reply is its content.
- Otherwise a bare reaction name (``+1``, ``heart``, ...) selects
  ``react`` and anything else selects ``reply``.
- A command the menu does not offer, or an empty reply, is no match.

Running the action goes through AuthGateway with the replying user's
session. A GitHubAPIError is logged and turned into one of the fixed
failure messages; every other exception propagates. An action the user
was asked to authorize for instead is reported as ``unauthenticated``,
never as a success.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from ..events.metrics import BridgeMetrics
from ..github.errors import GitHubAPIError
from ..github.gateway import AuthGateway, AuthState
from ..messages import MessageKey, text
from ..session import ReplySession
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
)
from .capture import CaptureError, PageCapture, normalize_padding
from .markdown import MediaTransformer, render_comment


logger = logging.getLogger(__name__)

REACTIONS = ("+1", "-1", "laugh", "confused", "heart", "hooray", "rocket", "eyes")

REACTION_PREVIEW = "application/vnd.github.squirrel-girl-preview"

SUCCESS = "success"
FAILURE = "failure"
UNAUTHENTICATED = "unauthenticated"

_PROMPTED = (AuthState.UNAUTHENTICATED, AuthState.FAILED)

# (result, message to send back)
Step = Tuple[str, Optional[str]]


class ActionOutcome(BaseModel):
    """Result of running one quick action.

    Attributes:
        command: The command that was run.
        message: Text to send back to chat (a link, an image reference or
                 a failure message), None when there is nothing to say.
        result: ``success``, ``failure``, or ``unauthenticated`` when the
                user was asked to authorize instead.
    """

    command: str
    message: Optional[str] = None
    result: str = SUCCESS


def split_commit_message(content: str) -> Tuple[str, str]:
    """Split a reply into a commit title and message at the first newline."""
    title, _, message = content.partition("\n")
    return title.strip(), message.strip()


class ActionDispatcher:
    """Resolves chat replies against quick-action menus and runs them.

    Attributes:
        gateway: Gateway used for every GitHub call.
        reply_footer: Footer appended to every comment the bridge posts.
        command_prefix: Prefix marking an explicit command.
    """

    def __init__(
        self,
        gateway: AuthGateway,
        reply_footer: str,
        command_prefix: str = "/",
        media: Optional[MediaTransformer] = None,
        capture: Optional[PageCapture] = None,
        metrics: Optional[BridgeMetrics] = None,
    ):
        self.gateway = gateway
        self.reply_footer = reply_footer
        self.command_prefix = command_prefix
        self._media = media
        self._capture = capture
        self._metrics = metrics

    def select(
        self,
        menu: ReplyMenu,
        content: str,
        explicit: bool = False,
    ) -> Optional[Tuple[ActionBinding, str]]:
        """Pick the binding a reply refers to.

        Args:
            menu: The notification's quick-action menu.
            content: The raw chat reply.
            explicit: The chat platform already knows the reply is a
                      command (e.g. the bot was mentioned).

        Returns:
            The binding and the content to run it with, or None.
        """
        body = content.strip()
        if self.command_prefix and body.startswith(self.command_prefix):
            explicit = True
            body = body[len(self.command_prefix):].lstrip()
        if not body:
            return None

        if explicit:
            name = body.split(None, 1)[0]
            message = body[len(name):].strip()
        else:
            name = ActionKind.REACT.value if body in REACTIONS else ActionKind.REPLY.value
            message = body

        binding = menu.get(name)
        if binding is None:
            logger.debug("No quick action for reply", extra={"command": name})
            return None
        return binding, message

    async def resolve(
        self,
        menu: ReplyMenu,
        content: str,
        session: ReplySession,
        explicit: bool = False,
    ) -> Optional[ActionOutcome]:
        """Select and run the action a reply refers to.

        Returns:
            The outcome, or None if the reply matches nothing in the menu.
        """
        selected = self.select(menu, content, explicit)
        if selected is None:
            if self._metrics is not None:
                self._metrics.record_quick_action("none", "no_match")
            return None
        binding, message = selected
        return await self.run(binding, message, session)

    async def run(
        self,
        binding: ActionBinding,
        content: str,
        session: ReplySession,
    ) -> ActionOutcome:
        """Run one binding with the given content."""
        logger.info(
            "Running quick action",
            extra={"command": binding.command, "account_id": session.account_id},
        )

        if isinstance(binding, LinkAction):
            result, message = SUCCESS, binding.url
        elif isinstance(binding, ReactAction):
            result, message = await self._react(binding, content, session)
        elif isinstance(binding, ReplyAction):
            result, message = await self._reply(
                binding.url, content, session, binding.params
            )
        elif isinstance(binding, BaseAction):
            result, message = await self._base(binding, content, session)
        elif isinstance(binding, MergeAction):
            result, message = await self._merge(binding, content, session)
        elif isinstance(binding, CloseAction):
            result, message = await self._close(binding, content, session)
        elif isinstance(binding, ShotAction):
            result, message = await self._shot(binding)
        else:
            raise TypeError(f"unsupported quick action: {binding!r}")

        if self._metrics is not None:
            self._metrics.record_quick_action(binding.command, result)
        return ActionOutcome(command=binding.command, message=message, result=result)

    async def _request(
        self,
        method: str,
        url: str,
        session: ReplySession,
        failure: MessageKey,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Step:
        try:
            state, _ = await self.gateway.call(method, url, session, body, headers)
        except GitHubAPIError as e:
            logger.warning(
                "Quick action request failed",
                extra={
                    "method": method,
                    "url": url,
                    "status_code": e.status_code,
                    "error": str(e),
                },
            )
            return FAILURE, text(failure)
        if state in _PROMPTED:
            return UNAUTHENTICATED, None
        return SUCCESS, None

    async def _react(
        self, binding: ReactAction, content: str, session: ReplySession
    ) -> Step:
        return await self._request(
            "POST",
            binding.url,
            session,
            MessageKey.SEND_FAILED,
            {"content": content},
            {"accept": REACTION_PREVIEW},
        )

    async def _reply(
        self,
        url: str,
        content: str,
        session: ReplySession,
        params: Optional[Dict[str, Any]] = None,
    ) -> Step:
        body = await render_comment(content, self.reply_footer, self._media)
        return await self._request(
            "POST",
            url,
            session,
            MessageKey.SEND_FAILED,
            {"body": body, **(params or {})},
        )

    async def _base(
        self, binding: BaseAction, content: str, session: ReplySession
    ) -> Step:
        return await self._request(
            "PATCH",
            binding.url,
            session,
            MessageKey.MODIFY_FAILED,
            {"base": content},
        )

    async def _merge(
        self, binding: MergeAction, content: str, session: ReplySession
    ) -> Step:
        title, message = split_commit_message(content)
        return await self._request(
            "PUT",
            binding.url,
            session,
            MessageKey.ACTION_FAILED,
            {
                "merge_method": binding.method,
                "commit_title": title,
                "commit_message": message,
            },
        )

    async def _close(
        self, binding: CloseAction, content: str, session: ReplySession
    ) -> Step:
        replied = (SUCCESS, None)
        if content:
            replied = await self._reply(binding.comment_url, content, session)
            # The user is already being asked to authorize
            if replied[0] == UNAUTHENTICATED:
                return replied
        closed = await self._request(
            "PATCH",
            binding.url,
            session,
            MessageKey.ACTION_FAILED,
            {"state": "closed"},
        )
        return closed if closed[0] != SUCCESS else replied

    async def _shot(self, binding: ShotAction) -> Step:
        if self._capture is None:
            logger.warning("Screenshot requested but no page capture is configured")
            return FAILURE, text(MessageKey.SCREENSHOT_FAILED)
        try:
            image = await self._capture.capture(
                binding.url,
                binding.selector,
                normalize_padding(binding.padding),
            )
        except CaptureError as e:
            logger.warning(
                "Screenshot failed",
                extra={"url": binding.url, "selector": binding.selector, "error": str(e)},
            )
            return FAILURE, text(MessageKey.SCREENSHOT_FAILED)
        return SUCCESS, image
