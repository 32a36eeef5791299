"""Unit tests for the MCP tool facade, using an in-memory store."""

from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from drivetime.lifecycle import apply_status
from drivetime.mcp import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    WIDGET_MIME_TYPE,
    WIDGET_URI,
    ToolContext,
    build_widget_html,
    connection_ready_event,
    handle_request,
    handle_tool_call,
)
from drivetime.models import Artifact


class MemoryStorage:
    """Just enough of Storage for the tools."""

    def __init__(self, artifacts: Optional[List[Artifact]] = None):
        self.artifacts: Dict[str, Artifact] = {a.id: a for a in artifacts or []}

    def get_artifact(self, artifact_id):
        return self.artifacts.get(artifact_id)

    def get_all_artifacts(self, user_id):
        return [a for a in self.artifacts.values() if a.user_id == user_id]

    def get_pending_artifacts(self, user_id):
        return [a for a in self.get_all_artifacts(user_id) if a.status == "ready"]

    def save_artifact(self, artifact):
        self.artifacts[artifact.id] = artifact

    def update_artifact_status(self, artifact_id, status, patch=None):
        current = self.artifacts.get(artifact_id)
        if current is None:
            return None
        self.artifacts[artifact_id] = apply_status(current, status, patch)
        return self.artifacts[artifact_id]


def make_ctx(*artifacts: Artifact, enricher=None) -> ToolContext:
    return ToolContext(
        storage=MemoryStorage(list(artifacts)),
        enricher=enricher or MagicMock(),
        user_id="demo-user",
        base_url="https://drive.example.com",
    )


def text_of(result) -> str:
    return result["content"][0]["text"]


def test_show_drivetime_counts_ready(make_artifact) -> None:
    """
    INVARIANT: The assistant's queue count is the number of ready artifacts
    BREAKS: Assistant promises episodes that have no summary yet
    """
    ctx = make_ctx(
        make_artifact(status="ready"),
        make_artifact(status="ready"),
        make_artifact(status="pending"),
    )

    result = handle_tool_call(ctx, "show_drivetime", {})

    assert result["structuredContent"]["episodeCount"] == 2
    assert result["structuredContent"]["message"] == "You have 2 episodes ready."
    assert len(result["_meta"]["episodes"]) == 2
    assert result["_meta"]["episodes"][0]["position"] == 1


def test_show_drivetime_empty() -> None:
    result = handle_tool_call(make_ctx(), "show_drivetime", {})

    assert result["structuredContent"] == {
        "episodeCount": 0,
        "message": "Your queue is empty. Add some ideas!",
    }


def test_get_todays_episodes_filters(make_artifact) -> None:
    ready = make_artifact(status="ready", title="Ready one", type="idea")
    done = make_artifact(status="completed", title="Done one")
    ctx = make_ctx(ready, done)

    pending = handle_tool_call(ctx, "get_todays_episodes", {})
    completed = handle_tool_call(ctx, "get_todays_episodes", {"status": "completed"})
    everything = handle_tool_call(ctx, "get_todays_episodes", {"status": "all"})

    assert pending["structuredContent"]["count"] == 1
    assert "1. [IDEA] Ready one" in text_of(pending)
    assert completed["structuredContent"]["episodes"][0]["id"] == done.id
    assert everything["structuredContent"]["count"] == 2


def test_get_todays_episodes_empty() -> None:
    result = handle_tool_call(make_ctx(), "get_todays_episodes", {})
    assert text_of(result) == "No episodes in queue. Use show_drivetime to add some!"


def test_get_episode_content_marks_playing(make_artifact) -> None:
    """
    INVARIANT: Reading an episode moves it to playing and stamps played_at
    BREAKS: Listening history never records what was played
    """
    artifact = make_artifact(status="ready", summary="Short version")
    ctx = make_ctx(artifact)

    result = handle_tool_call(ctx, "get_episode_content", {"episode_id": artifact.id})

    stored = ctx.storage.get_artifact(artifact.id)
    assert stored.status == "playing"
    assert stored.played_at is not None
    assert "Short version" in text_of(result)
    assert result["structuredContent"]["mode"] == "summary"
    assert result["_meta"]["fullContent"] == artifact.raw_content


def test_get_episode_content_full_mode(make_artifact) -> None:
    artifact = make_artifact(status="ready")
    enricher = MagicMock()
    enricher.full_audio_text.return_value = "Expanded script"
    ctx = make_ctx(artifact, enricher=enricher)

    result = handle_tool_call(
        ctx, "get_episode_content", {"episode_id": artifact.id, "mode": "full"}
    )

    assert "Expanded script" in text_of(result)
    enricher.full_audio_text.assert_called_once()


def test_get_episode_content_unknown_id() -> None:
    result = handle_tool_call(make_ctx(), "get_episode_content", {"episode_id": "nope"})

    assert result["structuredContent"] == {"error": "Episode not found"}
    assert text_of(result) == "Episode not found."


def test_missing_episode_id_is_tool_error() -> None:
    result = handle_tool_call(make_ctx(), "mark_episode_complete", {})
    assert "episode_id" in result["structuredContent"]["error"]


def test_mark_complete_reports_remaining(make_artifact) -> None:
    first = make_artifact(status="ready")
    second = make_artifact(status="ready")
    ctx = make_ctx(first, second)

    result = handle_tool_call(ctx, "mark_episode_complete", {"episode_id": first.id})

    assert result["structuredContent"] == {"completed": True, "remainingCount": 1}
    assert text_of(result) == "Done! 1 more episode to go."
    assert ctx.storage.get_artifact(first.id).completed_at is not None

    last = handle_tool_call(ctx, "mark_episode_complete", {"episode_id": second.id})
    assert text_of(last) == "All done! Your queue is clear."


def test_add_to_queue_creates_pending() -> None:
    ctx = make_ctx()

    result = handle_tool_call(
        ctx, "add_to_queue", {"type": "question", "content": "Why is the sky blue?"}
    )

    structured = result["structuredContent"]
    assert structured["added"] is True
    stored = ctx.storage.get_artifact(structured["id"])
    assert stored.status == "pending"
    assert stored.type == "question"
    assert text_of(result) == 'Saved "Why is the sky blue?" for later.'


def test_add_to_queue_url_becomes_article() -> None:
    ctx = make_ctx()

    result = handle_tool_call(
        ctx, "add_to_queue", {"type": "note", "content": "https://example.com/x"}
    )

    stored = ctx.storage.get_artifact(result["structuredContent"]["id"])
    assert stored.type == "article"
    assert stored.source_url == "https://example.com/x"


def test_unknown_tool() -> None:
    result = handle_tool_call(make_ctx(), "launch_rocket", {})
    assert result["structuredContent"] == {"error": "Unknown tool: launch_rocket"}


def test_initialize_and_tools_list() -> None:
    ctx = make_ctx()

    init = handle_request(ctx, {"jsonrpc": "2.0", "id": 1, "method": "initialize"})
    tools = handle_request(ctx, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"})

    assert init["id"] == 1
    assert init["result"]["serverInfo"] == {"name": "drivetime", "version": "1.0.0"}
    names = [tool["name"] for tool in tools["result"]["tools"]]
    assert names == [
        "show_drivetime",
        "get_todays_episodes",
        "get_episode_content",
        "mark_episode_complete",
        "add_to_queue",
    ]


def test_resources_read_widget(make_artifact) -> None:
    ctx = make_ctx(make_artifact(status="ready", title="Queued"))

    response = handle_request(
        ctx,
        {
            "jsonrpc": "2.0",
            "id": 3,
            "method": "resources/read",
            "params": {"uri": WIDGET_URI},
        },
    )

    content = response["result"]["contents"][0]
    assert content["mimeType"] == WIDGET_MIME_TYPE
    assert "window.__DRIVETIME_CONFIG__" in content["text"]
    assert "https://drive.example.com" in content["text"]
    assert "Queued" in content["text"]


def test_resources_read_unknown_uri() -> None:
    response = handle_request(
        make_ctx(),
        {"jsonrpc": "2.0", "id": 4, "method": "resources/read", "params": {"uri": "ui://x"}},
    )
    assert response["error"]["code"] == INVALID_PARAMS
    assert response["id"] == 4


@pytest.mark.parametrize(
    "body, code",
    [
        ([1, 2], INVALID_REQUEST),
        ({"jsonrpc": "2.0", "id": 5}, INVALID_REQUEST),
        ({"jsonrpc": "2.0", "id": 6, "method": "prompts/list"}, METHOD_NOT_FOUND),
        ({"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {}}, INVALID_PARAMS),
    ],
)
def test_protocol_errors(body, code) -> None:
    response = handle_request(make_ctx(), body)
    assert response["jsonrpc"] == "2.0"
    assert response["error"]["code"] == code


def test_unexpected_failure_is_internal_error(make_artifact) -> None:
    ctx = make_ctx()
    ctx.storage.get_pending_artifacts = MagicMock(side_effect=RuntimeError("db gone"))

    response = handle_request(
        ctx,
        {
            "jsonrpc": "2.0",
            "id": 8,
            "method": "tools/call",
            "params": {"name": "show_drivetime", "arguments": {}},
        },
    )

    assert response == {
        "jsonrpc": "2.0",
        "id": None,
        "error": {"code": INTERNAL_ERROR, "message": "Internal error"},
    }


def test_widget_html_escapes_script_close(make_artifact) -> None:
    html = build_widget_html("", [make_artifact(title="</script><b>x")])
    assert "</script><b>x" not in html
    assert "<\\/script><b>x" in html


def test_connection_ready_event_format() -> None:
    event = connection_ready_event()
    assert event.startswith("data: ")
    assert event.endswith("\n\n")
    assert '"connection/ready"' in event


@pytest.mark.parametrize("bad_type", ["podcast", "screenshot", None])
def test_add_to_queue_rejects_unknown_type(bad_type) -> None:
    """
    INVARIANT: add_to_queue only stores idea, question, note or article
    BREAKS: A bad type reaches the database and the call fails as Internal error
    """
    ctx = make_ctx()
    args = {"content": "hi"}
    if bad_type is not None:
        args["type"] = bad_type

    result = handle_tool_call(ctx, "add_to_queue", args)

    assert result["structuredContent"]["error"].startswith("Invalid argument: type")
    assert ctx.storage.artifacts == {}


@pytest.mark.parametrize(
    "params",
    [
        ["show_drivetime"],
        {"name": "show_drivetime", "arguments": ["not", "an", "object"]},
    ],
)
def test_non_object_params_are_invalid_params(params) -> None:
    response = handle_request(
        make_ctx(), {"jsonrpc": "2.0", "id": 9, "method": "tools/call", "params": params}
    )

    assert response["id"] == 9
    assert response["error"]["code"] == INVALID_PARAMS
