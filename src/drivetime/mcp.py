"""MCP tool-calling facade: JSON-RPC methods and the DriveTime tool catalogue.

Each tool maps onto Storage operations and answers with both a short text
for the assistant to say and a structured payload for the widget.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from .capture import build_artifact
from .lifecycle import ArtifactStatus
from .models import Artifact
from .observability import log as obs_log

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "drivetime"
SERVER_VERSION = "1.0.0"

WIDGET_URI = "ui://widget/drivetime.html"
WIDGET_MIME_TYPE = "text/html+skybridge"

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Types the assistant may queue; screenshots only arrive through the REST API
QUEUE_TYPES = ("idea", "question", "note", "article")


class JSONRPCError(Exception):
    """A JSON-RPC error to report in the response envelope."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


TOOLS: List[Dict[str, Any]] = [
    {
        "name": "show_drivetime",
        "description": "Show the DriveTime inbox widget where users can add ideas, questions, notes, and see their queue. Use this when the user wants to add content or manage their episodes.",
        "inputSchema": {"type": "object", "properties": {}},
        "_meta": {
            "openai/outputTemplate": WIDGET_URI,
            "openai/toolInvocation/invoking": "Opening DriveTime...",
            "openai/toolInvocation/invoked": "DriveTime ready.",
        },
        "annotations": {"readOnlyHint": True, "openWorldHint": False},
    },
    {
        "name": "get_todays_episodes",
        "description": "Get all episodes queued for today. Use this to start the drive-time audio experience or check what's in the queue.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "enum": ["all", "pending", "completed"],
                    "description": "Filter by status. Default is pending.",
                }
            },
        },
        "_meta": {
            "openai/toolInvocation/invoking": "Loading episodes...",
            "openai/toolInvocation/invoked": "Episodes loaded.",
        },
        "annotations": {"readOnlyHint": True, "openWorldHint": False},
    },
    {
        "name": "get_episode_content",
        "description": "Get content of a specific episode to read aloud. Returns the text for ChatGPT to speak.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "episode_id": {"type": "string", "description": "Episode ID"},
                "mode": {
                    "type": "string",
                    "enum": ["summary", "full"],
                    "description": "Summary or full content",
                },
            },
            "required": ["episode_id"],
        },
        "_meta": {
            "openai/toolInvocation/invoking": "Preparing episode...",
            "openai/toolInvocation/invoked": "Ready to play.",
        },
        "annotations": {"readOnlyHint": False, "openWorldHint": False},
    },
    {
        "name": "mark_episode_complete",
        "description": "Mark an episode as completed after listening.",
        "inputSchema": {
            "type": "object",
            "properties": {"episode_id": {"type": "string", "description": "Episode ID"}},
            "required": ["episode_id"],
        },
        "_meta": {
            "openai/toolInvocation/invoking": "Marking complete...",
            "openai/toolInvocation/invoked": "Done!",
        },
        "annotations": {"readOnlyHint": False, "destructiveHint": False},
    },
    {
        "name": "add_to_queue",
        "description": "Add a new idea, question, note, or article URL to the queue.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": list(QUEUE_TYPES),
                    "description": "Content type",
                },
                "content": {"type": "string", "description": "The content or URL to add"},
            },
            "required": ["type", "content"],
        },
        "_meta": {
            "openai/toolInvocation/invoking": "Adding to queue...",
            "openai/toolInvocation/invoked": "Added!",
        },
        "annotations": {"readOnlyHint": False, "openWorldHint": False},
    },
]

RESOURCES = [
    {
        "uri": WIDGET_URI,
        "name": "DriveTime Widget",
        "description": "Interactive widget for managing DriveTime episodes",
        "mimeType": WIDGET_MIME_TYPE,
    }
]


class ToolContext:
    """What a tool call needs: the store, the enricher and whose queue it is."""

    def __init__(self, storage, enricher, user_id: str, base_url: str = ""):
        self.storage = storage
        self.enricher = enricher
        self.user_id = user_id
        self.base_url = base_url


def plural(count: int) -> str:
    return "s" if count != 1 else ""


def text_result(
    structured: Dict[str, Any], text: str, meta: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Build the dual-shaped tool result."""
    result: Dict[str, Any] = {
        "structuredContent": structured,
        "content": [{"type": "text", "text": text}],
    }
    if meta is not None:
        result["_meta"] = meta
    return result


def error_result(message: str) -> Dict[str, Any]:
    """Tool-level error: a normal result carrying an error field."""
    return text_result({"error": message}, f"{message}.")


def _show_drivetime(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    artifacts = ctx.storage.get_pending_artifacts(ctx.user_id)
    count = len(artifacts)

    if count > 0:
        message = f"You have {count} episode{plural(count)} ready."
        text = f"DriveTime is ready with {count} episode{plural(count)} in your queue."
    else:
        message = "Your queue is empty. Add some ideas!"
        text = "DriveTime is ready. Your queue is empty - add some ideas, questions, or notes!"

    return text_result(
        {"episodeCount": count, "message": message},
        text,
        {
            "episodes": [
                {
                    "id": a.id,
                    "position": i,
                    "type": a.type,
                    "title": a.title,
                    "summary": a.summary,
                }
                for i, a in enumerate(artifacts, 1)
            ]
        },
    )


def _get_todays_episodes(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    status = args.get("status") or "pending"

    if status == "pending":
        artifacts = ctx.storage.get_pending_artifacts(ctx.user_id)
    else:
        artifacts = ctx.storage.get_all_artifacts(ctx.user_id)
        if status == "completed":
            artifacts = [
                a for a in artifacts if a.status == ArtifactStatus.COMPLETED.value
            ]

    count = len(artifacts)
    if count > 0:
        listing = "\n".join(
            f"{i}. [{a.type.upper()}] {a.title}" for i, a in enumerate(artifacts, 1)
        )
        text = (
            f"Here are your {count} episode{plural(count)}:\n\n{listing}\n\n"
            "Want me to read the first one?"
        )
    else:
        text = "No episodes in queue. Use show_drivetime to add some!"

    return text_result(
        {
            "count": count,
            "episodes": [
                {"id": a.id, "position": i, "type": a.type, "title": a.title}
                for i, a in enumerate(artifacts, 1)
            ],
        },
        text,
        {
            "episodes": [
                {
                    "id": a.id,
                    "position": i,
                    "type": a.type,
                    "title": a.title,
                    "summary": a.summary,
                    "rawContent": a.raw_content,
                }
                for i, a in enumerate(artifacts, 1)
            ]
        },
    )


def _get_episode_content(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    episode_id = args.get("episode_id")
    if not episode_id:
        return error_result("Missing required argument: episode_id")
    mode = args.get("mode") or "summary"

    artifact = ctx.storage.get_artifact(episode_id)
    if artifact is None:
        return error_result("Episode not found")

    artifact = (
        ctx.storage.update_artifact_status(episode_id, ArtifactStatus.PLAYING.value)
        or artifact
    )

    if mode == "full":
        content_text = ctx.enricher.full_audio_text(ctx.storage, artifact)
    else:
        content_text = artifact.summary or artifact.raw_content

    return text_result(
        {"id": artifact.id, "type": artifact.type, "title": artifact.title, "mode": mode},
        f"**{artifact.type.upper()}: {artifact.title}**\n\n{content_text}\n\n---\n"
        '*Say "next" to continue, "more detail" for full version, '
        "or ask me anything about this.*",
        {
            "episodeId": artifact.id,
            "type": artifact.type,
            "sourceUrl": artifact.source_url,
            "fullContent": artifact.raw_content,
        },
    )


def _mark_episode_complete(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    episode_id = args.get("episode_id")
    if not episode_id:
        return error_result("Missing required argument: episode_id")

    updated = ctx.storage.update_artifact_status(
        episode_id, ArtifactStatus.COMPLETED.value
    )
    if updated is None:
        return error_result("Episode not found")

    remaining = len(ctx.storage.get_pending_artifacts(ctx.user_id))
    if remaining > 0:
        text = f"Done! {remaining} more episode{plural(remaining)} to go."
    else:
        text = "All done! Your queue is clear."

    return text_result({"completed": True, "remainingCount": remaining}, text)


def _add_to_queue(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    content = args.get("content")
    if not content or not isinstance(content, str):
        return error_result("Missing required argument: content")
    artifact_type = args.get("type")
    if artifact_type not in QUEUE_TYPES:
        return error_result(
            f"Invalid argument: type must be one of {', '.join(QUEUE_TYPES)}"
        )

    artifact = build_artifact(ctx.user_id, artifact_type, content)
    ctx.storage.save_artifact(artifact)
    obs_log("artifact.created", artifact_id=artifact.id, type=artifact.type, via="mcp")

    return text_result(
        {
            "added": True,
            "id": artifact.id,
            "title": artifact.title,
            "type": artifact.type,
        },
        f'Saved "{artifact.title}" for later.',
    )


TOOL_HANDLERS: Dict[str, Callable[[ToolContext, Dict[str, Any]], Dict[str, Any]]] = {
    "show_drivetime": _show_drivetime,
    "get_todays_episodes": _get_todays_episodes,
    "get_episode_content": _get_episode_content,
    "mark_episode_complete": _mark_episode_complete,
    "add_to_queue": _add_to_queue,
}


def handle_tool_call(
    ctx: ToolContext, name: str, args: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Dispatch a tools/call to its handler.

    Unknown tools come back as an error result, not an exception.
    """
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        return text_result({"error": f"Unknown tool: {name}"}, f"Unknown tool: {name}")

    obs_log("mcp.tool_call", tool=name)
    return handler(ctx, args or {})


def build_widget_html(base_url: str, episodes: List[Artifact]) -> str:
    """Render the chat widget page with the API base and queue injected."""
    config = {
        "apiBase": base_url,
        "episodes": [
            {
                "id": a.id,
                "type": a.type,
                "title": a.title,
                "summary": a.summary,
                "status": a.status,
            }
            for a in episodes
        ],
    }
    # Keep "</script>" inside titles from closing the tag
    config_json = json.dumps(config).replace("</", "<\\/")

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>DriveTime</title>
<script>
  window.__DRIVETIME_CONFIG__ = {config_json};
</script>
</head>
<body>
<div id="root">Loading DriveTime...</div>
<script>
  const cfg = window.__DRIVETIME_CONFIG__;
  const data = (window.openai && window.openai.toolOutput) || {{}};
  const root = document.getElementById('root');
  const heading = document.createElement('h2');
  heading.textContent = 'DriveTime';
  const message = document.createElement('p');
  message.textContent = data.message || (cfg.episodes.length + ' episodes ready');
  const list = document.createElement('ol');
  cfg.episodes.forEach(function (ep) {{
    const item = document.createElement('li');
    item.textContent = '[' + ep.type.toUpperCase() + '] ' + ep.title;
    list.appendChild(item);
  }});
  root.replaceChildren(heading, message, list);
</script>
</body>
</html>"""


def _read_resource(ctx: ToolContext, params: Dict[str, Any]) -> Dict[str, Any]:
    uri = params.get("uri")
    if uri != WIDGET_URI:
        raise JSONRPCError(INVALID_PARAMS, f"Resource not found: {uri}")

    episodes = ctx.storage.get_pending_artifacts(ctx.user_id)
    return {
        "contents": [
            {
                "uri": WIDGET_URI,
                "mimeType": WIDGET_MIME_TYPE,
                "text": build_widget_html(ctx.base_url, episodes),
                "_meta": {
                    "openai/widgetPrefersBorder": True,
                    "openai/widgetDomain": ctx.base_url,
                    "openai/widgetCSP": {
                        "connect_domains": [ctx.base_url],
                        "resource_domains": [ctx.base_url],
                    },
                },
            }
        ]
    }


def error_response(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def handle_request(ctx: ToolContext, body: Any) -> Dict[str, Any]:
    """Handle one JSON-RPC request and return the response envelope.

    Protocol problems come back as error objects; unexpected failures are
    logged and reported as INTERNAL_ERROR with a null id.
    """
    if not isinstance(body, dict) or not isinstance(body.get("method"), str):
        return error_response(
            body.get("id") if isinstance(body, dict) else None,
            INVALID_REQUEST,
            "Invalid Request",
        )

    request_id = body.get("id")
    method = body["method"]
    params = body.get("params")
    if params is None:
        params = {}

    try:
        if not isinstance(params, dict):
            raise JSONRPCError(INVALID_PARAMS, "params must be an object")

        if method == "initialize":
            result = {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}, "resources": {}},
                "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            }
        elif method == "tools/list":
            result = {"tools": TOOLS}
        elif method == "tools/call":
            name = params.get("name")
            if not isinstance(name, str):
                raise JSONRPCError(INVALID_PARAMS, "Missing tool name")
            arguments = params.get("arguments")
            if arguments is None:
                arguments = {}
            if not isinstance(arguments, dict):
                raise JSONRPCError(INVALID_PARAMS, "arguments must be an object")
            result = handle_tool_call(ctx, name, arguments)
        elif method == "resources/list":
            result = {"resources": RESOURCES}
        elif method == "resources/read":
            result = _read_resource(ctx, params)
        else:
            raise JSONRPCError(METHOD_NOT_FOUND, f"Method not found: {method}")

    except JSONRPCError as e:
        return error_response(request_id, e.code, e.message)
    except Exception as e:
        logger.error(f"MCP error in {method}: {e}")
        return error_response(None, INTERNAL_ERROR, "Internal error")

    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def connection_ready_event() -> str:
    """The single server-sent event emitted on the MCP stream."""
    message = {
        "jsonrpc": "2.0",
        "method": "connection/ready",
        "params": {"serverName": SERVER_NAME, "version": SERVER_VERSION},
    }
    return f"data: {json.dumps(message)}\n\n"
