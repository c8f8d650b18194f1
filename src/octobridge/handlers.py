"""Default webhook event handlers.

Each handler turns one kind of webhook envelope into a notification text
plus the quick-action menu users may answer it with. They are registered
at the back of their chains, so an integrator can shadow any of them by
registering with ``prepend=True``.

Payloads missing a field a handler needs are not claimed, so the event
falls through instead of failing the delivery.

Comments the bridge posted itself (marked with INDICATOR) are ignored so
a reply from chat is not echoed back into chat.
"""

import logging
from typing import Any, Dict, Optional

from .replies.actions import (
    BaseAction,
    CloseAction,
    LinkAction,
    MergeAction,
    ReactAction,
    ReplyAction,
    build_menu,
)
from .replies.markdown import is_bridge_comment
from .webhook.models import EventResult, WebhookEnvelope
from .webhook.router import EventRouter


logger = logging.getLogger(__name__)

# Longest body excerpt quoted in a notification
SUMMARY_LIMIT = 200


def _summary(body: Optional[str], limit: int = SUMMARY_LIMIT) -> str:
    body = (body or "").strip()
    if len(body) > limit:
        return body[:limit].rstrip() + "..."
    return body


def _section(envelope: WebhookEnvelope, name: str) -> Dict[str, Any]:
    value = envelope.payload.get(name)
    return value if isinstance(value, dict) else {}


def _lines(*lines: str) -> str:
    return "\n".join(line for line in lines if line)


def _has(section: Dict[str, Any], *keys: str) -> bool:
    return all(section.get(key) for key in keys)


def on_issue_opened(envelope: WebhookEnvelope) -> Optional[EventResult]:
    issue = _section(envelope, "issue")
    if not _has(issue, "url", "html_url", "comments_url"):
        return None
    message = _lines(
        f"{envelope.sender} opened an issue {envelope.repository}#{issue.get('number')}",
        f"Title: {issue.get('title', '')}",
        _summary(issue.get("body")),
    )
    return message, build_menu(
        LinkAction(url=issue["html_url"]),
        ReactAction(url=f"{issue['url']}/reactions"),
        ReplyAction(url=issue["comments_url"]),
        CloseAction(url=issue["url"], comment_url=issue["comments_url"]),
    )


def on_issue_comment_created(envelope: WebhookEnvelope) -> Optional[EventResult]:
    comment = _section(envelope, "comment")
    issue = _section(envelope, "issue")
    if not _has(comment, "url", "html_url") or not _has(issue, "comments_url"):
        return None
    if is_bridge_comment(comment.get("body")):
        return None
    kind = "pull request" if "pull_request" in issue else "issue"
    message = _lines(
        f"{envelope.sender} commented on {kind} "
        f"{envelope.repository}#{issue.get('number')}",
        _summary(comment.get("body")),
    )
    return message, build_menu(
        LinkAction(url=comment["html_url"]),
        ReactAction(url=f"{comment['url']}/reactions"),
        ReplyAction(url=issue["comments_url"]),
    )


def on_pull_request_opened(envelope: WebhookEnvelope) -> Optional[EventResult]:
    pull = _section(envelope, "pull_request")
    if not _has(pull, "url", "html_url", "issue_url", "comments_url"):
        return None
    base = pull.get("base") or {}
    head = pull.get("head") or {}
    message = _lines(
        f"{envelope.sender} opened a pull request "
        f"{envelope.repository}#{pull.get('number')} "
        f"({base.get('ref')} <- {head.get('ref')})",
        f"Title: {pull.get('title', '')}",
        _summary(pull.get("body")),
    )
    merge_url = f"{pull['url']}/merge"
    return message, build_menu(
        LinkAction(url=pull["html_url"]),
        ReactAction(url=f"{pull['issue_url']}/reactions"),
        ReplyAction(url=pull["comments_url"]),
        BaseAction(url=pull["url"]),
        MergeAction(url=merge_url, method="merge"),
        MergeAction(url=merge_url, method="squash"),
        MergeAction(url=merge_url, method="rebase"),
        CloseAction(url=pull["url"], comment_url=pull["comments_url"]),
    )


def on_pull_request_closed(envelope: WebhookEnvelope) -> Optional[EventResult]:
    pull = _section(envelope, "pull_request")
    if not _has(pull, "html_url"):
        return None
    verb = "merged" if pull.get("merged") else "closed"
    message = (
        f"{envelope.sender} {verb} pull request "
        f"{envelope.repository}#{pull.get('number')}"
    )
    return message, build_menu(LinkAction(url=pull["html_url"]))


def on_review_comment_created(envelope: WebhookEnvelope) -> Optional[EventResult]:
    comment = _section(envelope, "comment")
    pull = _section(envelope, "pull_request")
    if not _has(comment, "id", "url", "html_url") or not _has(
        pull, "review_comments_url"
    ):
        return None
    if is_bridge_comment(comment.get("body")):
        return None
    message = _lines(
        f"{envelope.sender} reviewed pull request "
        f"{envelope.repository}#{pull.get('number')} on {comment.get('path')}",
        _summary(comment.get("body")),
    )
    return message, build_menu(
        LinkAction(url=comment["html_url"]),
        ReactAction(url=f"{comment['url']}/reactions"),
        ReplyAction(
            url=pull["review_comments_url"],
            params={"in_reply_to": comment["id"]},
        ),
    )


def on_star_created(envelope: WebhookEnvelope) -> Optional[EventResult]:
    repository = _section(envelope, "repository")
    message = (
        f"{envelope.sender} starred repository {envelope.repository} "
        f"({repository.get('stargazers_count', 0)} stars)"
    )
    return message, None


def register_default_handlers(router: EventRouter) -> None:
    """Attach the built-in handlers to a router."""
    router.on("issues/opened", on_issue_opened)
    router.on("issue_comment/created", on_issue_comment_created)
    router.on("pull_request/opened", on_pull_request_opened)
    router.on("pull_request/closed", on_pull_request_closed)
    router.on("pull_request_review_comment/created", on_review_comment_created)
    router.on("star/created", on_star_created)
    logger.debug("Registered default webhook handlers")
