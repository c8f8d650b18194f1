"""Unit tests for the quick-action dispatcher."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from octobridge.github.errors import GitHubAPIError
from octobridge.github.oauth import TOKEN_URL
from octobridge.messages import MessageKey, text
from octobridge.replies.actions import (
    BaseAction,
    CloseAction,
    LinkAction,
    MergeAction,
    ReactAction,
    ReplyAction,
    ShotAction,
    build_menu,
)
from octobridge.replies.capture import CaptureError
from octobridge.replies.dispatcher import (
    REACTION_PREVIEW,
    ActionDispatcher,
    split_commit_message,
)
from octobridge.replies.markdown import INDICATOR


def run_async(coro):
    return asyncio.run(coro)


REPO = "https://api.github.com/repos/acme/widgets"
ISSUE_URL = f"{REPO}/issues/3"
COMMENTS_URL = f"{ISSUE_URL}/comments"
PULL_URL = f"{REPO}/pulls/4"
MERGE_URL = f"{PULL_URL}/merge"
FOOTER = "---\nsent from chat"


@pytest.fixture
def dispatcher(gateway, metrics):
    return ActionDispatcher(gateway, reply_footer=FOOTER, metrics=metrics)


@pytest.fixture
def issue_menu():
    return build_menu(
        LinkAction(url="https://github.com/acme/widgets/issues/3"),
        ReactAction(url=f"{ISSUE_URL}/reactions"),
        ReplyAction(url=COMMENTS_URL),
        CloseAction(url=ISSUE_URL, comment_url=COMMENTS_URL),
    )


@pytest.fixture
def pull_menu():
    return build_menu(
        LinkAction(url="https://github.com/acme/widgets/pull/4"),
        BaseAction(url=PULL_URL),
        MergeAction(url=MERGE_URL, method="merge"),
        MergeAction(url=MERGE_URL, method="squash"),
        MergeAction(url=MERGE_URL, method="rebase"),
    )


class TestBuildMenu:
    def test_merge_family_keyed_by_method(self, pull_menu):
        assert set(pull_menu) == {"link", "base", "merge", "squash", "rebase"}
        assert pull_menu["squash"].method == "squash"

    def test_duplicate_command_rejected(self):
        with pytest.raises(ValueError):
            build_menu(LinkAction(url="a"), LinkAction(url="b"))


class TestSelect:
    @pytest.mark.parametrize("reaction", ["+1", "-1", "heart", "rocket", "eyes"])
    def test_reaction_name_selects_react(self, dispatcher, issue_menu, reaction):
        binding, content = dispatcher.select(issue_menu, reaction)

        assert binding.command == "react"
        assert content == reaction

    def test_other_text_selects_reply(self, dispatcher, issue_menu):
        binding, content = dispatcher.select(issue_menu, "  thanks for the report  ")

        assert binding.command == "reply"
        assert content == "thanks for the report"

    def test_reaction_word_inside_sentence_is_reply(self, dispatcher, issue_menu):
        binding, _ = dispatcher.select(issue_menu, "heart emoji please")

        assert binding.command == "reply"

    def test_prefix_makes_command_explicit(self, dispatcher, pull_menu):
        binding, content = dispatcher.select(pull_menu, "/squash Fix bug\nDetails")

        assert binding.command == "squash"
        assert content == "Fix bug\nDetails"

    def test_explicit_flag_without_prefix(self, dispatcher, pull_menu):
        binding, content = dispatcher.select(pull_menu, "base  develop ", explicit=True)

        assert binding.command == "base"
        assert content == "develop"

    def test_explicit_command_without_content(self, dispatcher, issue_menu):
        binding, content = dispatcher.select(issue_menu, "/close")

        assert binding.command == "close"
        assert content == ""

    @pytest.mark.parametrize("content", ["", "   ", "/", "/ "])
    def test_empty_content_is_no_match(self, dispatcher, issue_menu, content):
        assert dispatcher.select(issue_menu, content) is None

    def test_command_missing_from_menu_is_no_match(self, dispatcher, issue_menu):
        assert dispatcher.select(issue_menu, "/merge now") is None

    def test_reply_without_reply_binding_is_no_match(self, dispatcher, pull_menu):
        assert dispatcher.select(pull_menu, "looks good") is None

    def test_custom_prefix(self, gateway, pull_menu):
        dispatcher = ActionDispatcher(gateway, FOOTER, command_prefix="!")

        binding, _ = dispatcher.select(pull_menu, "!rebase")

        assert binding.command == "rebase"


class TestResolve:
    def test_no_match_runs_nothing(self, api, session, dispatcher, issue_menu, metrics):
        assert run_async(dispatcher.resolve(issue_menu, "/shot", session)) is None
        assert api.requests == []
        value = metrics.registry.get_sample_value(
            "octobridge_quick_actions_total", {"action": "none", "outcome": "no_match"}
        )
        assert value == 1.0

    def test_link_returns_url_without_network(self, api, session, dispatcher, issue_menu):
        outcome = run_async(dispatcher.resolve(issue_menu, "/link", session))

        assert outcome.command == "link"
        assert outcome.message == "https://github.com/acme/widgets/issues/3"
        assert api.requests == []

    def test_react_posts_with_preview_accept(
        self, api, session, dispatcher, issue_menu, decode
    ):
        api.add("POST", f"{ISSUE_URL}/reactions", status_code=201)

        outcome = run_async(dispatcher.resolve(issue_menu, "hooray", session))

        assert outcome.command == "react"
        assert outcome.message is None
        request = api.requests[0]
        assert decode(request) == {"content": "hooray"}
        assert request.headers["accept"] == REACTION_PREVIEW

    def test_reply_posts_rendered_comment(
        self, api, session, dispatcher, issue_menu, decode
    ):
        api.add("POST", COMMENTS_URL, status_code=201)

        run_async(dispatcher.resolve(issue_menu, "I can reproduce &amp; fix", session))

        assert decode(api.requests[0]) == {
            "body": "\n".join(["I can reproduce & fix", INDICATOR, FOOTER])
        }

    def test_reply_merges_params(self, api, session, dispatcher, decode):
        url = f"{PULL_URL}/comments"
        api.add("POST", url, status_code=201)
        menu = build_menu(ReplyAction(url=url, params={"in_reply_to": 42}))

        run_async(dispatcher.resolve(menu, "agreed", session))

        body = decode(api.requests[0])
        assert body["in_reply_to"] == 42
        assert body["body"].startswith("agreed\n")

    def test_reply_uses_media_transformer(self, api, session, gateway, issue_menu, decode):
        api.add("POST", COMMENTS_URL, status_code=201)
        media = AsyncMock()
        media.transform.return_value = '<img src="https://cdn.example/a.png"/>'
        dispatcher = ActionDispatcher(gateway, FOOTER, media=media)

        run_async(dispatcher.resolve(issue_menu, '<img src="chat://a"/>', session))

        media.transform.assert_awaited_once_with('<img src="chat://a"/>')
        body = decode(api.requests[0])["body"]
        assert body.startswith("![image](https://cdn.example/a.png)\n")

    def test_base_patches_branch(self, api, session, dispatcher, pull_menu, decode):
        api.add("PATCH", PULL_URL)

        run_async(dispatcher.resolve(pull_menu, "/base main", session))

        assert decode(api.requests[0]) == {"base": "main"}

    def test_merge_splits_title_and_message(
        self, api, session, dispatcher, pull_menu, decode
    ):
        api.add("PUT", MERGE_URL, json_body={"merged": True})

        run_async(
            dispatcher.resolve(pull_menu, "/merge Fix bug\n\nDetails here", session)
        )

        assert decode(api.requests[0]) == {
            "merge_method": "merge",
            "commit_title": "Fix bug",
            "commit_message": "Details here",
        }

    @pytest.mark.parametrize("method", ["squash", "rebase"])
    def test_merge_family_uses_method(
        self, api, session, dispatcher, pull_menu, decode, method
    ):
        api.add("PUT", MERGE_URL, json_body={"merged": True})

        outcome = run_async(dispatcher.resolve(pull_menu, f"/{method}", session))

        assert outcome.command == method
        assert decode(api.requests[0])["merge_method"] == method

    def test_close_with_content_comments_first(
        self, api, session, dispatcher, issue_menu, decode
    ):
        api.add("POST", COMMENTS_URL, status_code=201)
        api.add("PATCH", ISSUE_URL)

        outcome = run_async(dispatcher.resolve(issue_menu, "/close duplicate of #1", session))

        assert outcome.message is None
        assert [r.method for r in api.requests] == ["POST", "PATCH"]
        assert decode(api.requests[0])["body"].startswith("duplicate of #1\n")
        assert decode(api.requests[1]) == {"state": "closed"}

    def test_close_without_content_only_patches(
        self, api, session, dispatcher, issue_menu, decode
    ):
        api.add("PATCH", ISSUE_URL)

        run_async(dispatcher.resolve(issue_menu, "/close", session))

        assert [r.method for r in api.requests] == ["PATCH"]
        assert decode(api.requests[0]) == {"state": "closed"}

    def test_unlinked_account_is_prompted(
        self, api, make_session, dispatcher, issue_menu
    ):
        session = make_session("nobody")

        outcome = run_async(dispatcher.resolve(issue_menu, "hello", session))

        assert outcome.message is None
        assert outcome.result == "unauthenticated"
        assert api.requests == []
        assert session.sent == [text(MessageKey.REQUIRE_AUTH)]

    def test_unlinked_close_prompts_once(
        self, api, make_session, dispatcher, issue_menu
    ):
        session = make_session("nobody")

        outcome = run_async(dispatcher.resolve(issue_menu, "/close bye", session))

        assert outcome.result == "unauthenticated"
        assert session.sent == [text(MessageKey.REQUIRE_AUTH)]


class TestFailures:
    def test_reply_failure_message(self, api, session, dispatcher, issue_menu, metrics):
        api.add("POST", COMMENTS_URL, status_code=403, json_body={"message": "locked"})

        outcome = run_async(dispatcher.resolve(issue_menu, "hello", session))

        assert outcome.message == text(MessageKey.SEND_FAILED)
        value = metrics.registry.get_sample_value(
            "octobridge_quick_actions_total", {"action": "reply", "outcome": "failure"}
        )
        assert value == 1.0

    def test_react_failure_message(self, api, session, dispatcher, issue_menu):
        api.add("POST", f"{ISSUE_URL}/reactions", status_code=422)

        outcome = run_async(dispatcher.resolve(issue_menu, "+1", session))

        assert outcome.message == text(MessageKey.SEND_FAILED)

    def test_base_failure_message(self, api, session, dispatcher, pull_menu):
        api.add("PATCH", PULL_URL, status_code=422)

        outcome = run_async(dispatcher.resolve(pull_menu, "/base nope", session))

        assert outcome.message == text(MessageKey.MODIFY_FAILED)

    def test_merge_failure_message(self, api, session, dispatcher, pull_menu):
        api.add("PUT", MERGE_URL, status_code=405, json_body={"message": "not mergeable"})

        outcome = run_async(dispatcher.resolve(pull_menu, "/merge", session))

        assert outcome.message == text(MessageKey.ACTION_FAILED)

    def test_close_failure_message(self, api, session, dispatcher, issue_menu):
        api.add("PATCH", ISSUE_URL, status_code=500)

        outcome = run_async(dispatcher.resolve(issue_menu, "/close", session))

        assert outcome.message == text(MessageKey.ACTION_FAILED)

    def test_close_still_closes_when_comment_fails(
        self, api, session, dispatcher, issue_menu
    ):
        api.add("POST", COMMENTS_URL, status_code=500)
        api.add("PATCH", ISSUE_URL)

        outcome = run_async(dispatcher.resolve(issue_menu, "/close bye", session))

        assert outcome.message == text(MessageKey.SEND_FAILED)
        assert len(api.calls("PATCH", ISSUE_URL)) == 1

    def test_success_is_recorded(self, api, session, dispatcher, pull_menu, metrics):
        api.add("PATCH", PULL_URL)

        run_async(dispatcher.resolve(pull_menu, "/base main", session))

        value = metrics.registry.get_sample_value(
            "octobridge_quick_actions_total", {"action": "base", "outcome": "success"}
        )
        assert value == 1.0

    def test_prompted_action_is_not_recorded_as_success(
        self, api, make_session, dispatcher, pull_menu, metrics
    ):
        session = make_session("nobody")

        run_async(dispatcher.resolve(pull_menu, "/merge", session))

        sample = metrics.registry.get_sample_value
        assert sample(
            "octobridge_quick_actions_total",
            {"action": "merge", "outcome": "unauthenticated"},
        ) == 1.0
        assert sample(
            "octobridge_quick_actions_total", {"action": "merge", "outcome": "success"}
        ) is None

    def test_expired_refresh_is_recorded_as_unauthenticated(
        self, api, session, dispatcher, pull_menu, metrics
    ):
        api.add("PATCH", PULL_URL, status_code=401)
        api.add("POST", TOKEN_URL, status_code=500)

        outcome = run_async(dispatcher.resolve(pull_menu, "/base main", session))

        assert outcome.result == "unauthenticated"
        assert session.sent == [text(MessageKey.AUTH_EXPIRED)]
        value = metrics.registry.get_sample_value(
            "octobridge_quick_actions_total",
            {"action": "base", "outcome": "unauthenticated"},
        )
        assert value == 1.0

    def test_non_api_errors_propagate(self, session, issue_menu):
        gateway = AsyncMock()
        gateway.call.side_effect = KeyError("bug")
        dispatcher = ActionDispatcher(gateway, FOOTER)

        with pytest.raises(KeyError):
            run_async(dispatcher.resolve(issue_menu, "hello", session))

    def test_api_error_from_gateway_is_converted(self, session, issue_menu):
        gateway = AsyncMock()
        gateway.call.side_effect = GitHubAPIError("boom", status_code=502)
        dispatcher = ActionDispatcher(gateway, FOOTER)

        outcome = run_async(dispatcher.resolve(issue_menu, "hello", session))

        assert outcome.message == text(MessageKey.SEND_FAILED)


class TestShot:
    @pytest.fixture
    def menu(self):
        return build_menu(
            ShotAction(
                url="https://github.com/acme/widgets/pull/4/files",
                selector="#diff",
                padding=[8, 4],
            )
        )

    def test_capture_result_is_returned(self, session, gateway, menu):
        capture = AsyncMock()
        capture.capture.return_value = "image://shot.png"
        dispatcher = ActionDispatcher(gateway, FOOTER, capture=capture)

        outcome = run_async(dispatcher.resolve(menu, "/shot", session))

        assert outcome.message == "image://shot.png"
        capture.capture.assert_awaited_once_with(
            "https://github.com/acme/widgets/pull/4/files",
            "#diff",
            (8, 4, 0.0, 0.0),
        )

    def test_capture_error_message(self, session, gateway, menu):
        capture = AsyncMock()
        capture.capture.side_effect = CaptureError("element not found")
        dispatcher = ActionDispatcher(gateway, FOOTER, capture=capture)

        outcome = run_async(dispatcher.resolve(menu, "/shot", session))

        assert outcome.message == text(MessageKey.SCREENSHOT_FAILED)

    def test_missing_capture_message(self, session, dispatcher, menu):
        outcome = run_async(dispatcher.resolve(menu, "/shot", session))

        assert outcome.message == text(MessageKey.SCREENSHOT_FAILED)


class TestSplitCommitMessage:
    def test_title_only(self):
        assert split_commit_message("  Fix bug  ") == ("Fix bug", "")

    def test_title_and_body(self):
        assert split_commit_message("Fix bug\n\nDetails here\n") == (
            "Fix bug",
            "Details here",
        )

    def test_empty(self):
        assert split_commit_message("") == ("", "")
