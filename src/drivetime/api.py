"""REST API server for DriveTime."""

import json
import time

from fastapi import FastAPI, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from rich.console import Console

from . import __version__
from .api_errors import APIError, ValidationError, NotFoundError, ServerError
from .api_models import ArtifactCreateRequest, ArtifactUpdateRequest, TTSRequest
from .audio import SpeechSynthesizer, speech_text
from .capture import build_artifact
from .config import Config
from .enrichment import ContentEnricher
from .mcp import (
    PARSE_ERROR,
    ToolContext,
    connection_ready_event,
    error_response,
    handle_request,
)
from .observability import log as obs_log
from .storage import Storage

console = Console()

app = FastAPI(
    title="DriveTime API",
    description="Capture artifacts and play them back as audio episodes",
    version=__version__,
)


@app.middleware("http")
async def log_requests(request: Request, call_next) -> Response:
    """Log API requests as one dim console line plus an observability event."""
    if not request.url.path.startswith("/api/"):
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = (time.time() - start_time) * 1000

    client_ip = request.client.host if request.client else "unknown"
    console.print(
        f"[dim]   📡 API: {request.method} {request.url.path} from {client_ip} → {response.status_code} ({duration:.0f}ms)[/dim]"
    )
    obs_log(
        "api.request",
        method=request.method,
        path=request.url.path,
        client_ip=client_ip,
        status_code=response.status_code,
        duration_ms=int(duration),
    )
    return response


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Format APIError as {"error": ..., "details": ...}."""
    content = {"error": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert FastAPI's {"detail": [...]} validation format to a 400 {"error": ...}."""
    first_error = exc.errors()[0]
    field = " -> ".join(str(loc) for loc in first_error["loc"])

    return JSONResponse(
        status_code=400,
        content={"error": f"Validation error in {field}: {first_error['msg']}"},
    )


# Browser extension and chat widget call from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


async def get_config() -> Config:
    """Dependency injection for Config, loaded from the standard location."""
    return Config.from_file()


async def get_storage(config: Config = Depends(get_config)) -> Storage:
    """Dependency injection for Storage, closed after each request."""
    storage = Storage(config.db_path)
    try:
        yield storage
    finally:
        storage.close()


async def get_enricher(config: Config = Depends(get_config)) -> ContentEnricher:
    """Dependency injection for the LLM enricher."""
    return ContentEnricher(config.llm_settings())


async def get_synthesizer(config: Config = Depends(get_config)) -> SpeechSynthesizer:
    """Dependency injection for text-to-speech."""
    settings = config.llm_settings()
    return SpeechSynthesizer(
        model=config.audio_model,
        voice=config.audio_voice,
        api_key=settings.get("api_key"),
    )


async def get_user_id(config: Config = Depends(get_config)) -> str:
    """Owner of every artifact; there are no accounts yet."""
    return config.user_id


def public_base_url(request: Request, config: Config) -> str:
    """Base URL the chat widget should call back to."""
    if config.public_url:
        return config.public_url.rstrip("/")
    return str(request.base_url).rstrip("/")


@app.get("/health")
async def health_check(storage: Storage = Depends(get_storage)) -> dict:
    """Health check endpoint that verifies database connectivity."""
    try:
        return {
            "status": "healthy",
            "service": "drivetime-api",
            "database": "connected",
            "artifacts": storage.count_artifacts(),
        }
    except Exception as e:
        raise ServerError("Health check failed", str(e))


@app.options("/api/artifacts")
async def artifacts_options() -> dict:
    return {}


@app.get("/api/artifacts")
async def list_artifacts(
    storage: Storage = Depends(get_storage),
    user_id: str = Depends(get_user_id),
) -> dict:
    """List all artifacts plus their per-day groups."""
    try:
        artifacts = storage.get_all_artifacts(user_id)
        day_groups = storage.get_day_groups(user_id)
        return {
            "artifacts": [artifact.to_dict() for artifact in artifacts],
            "dayGroups": [group.to_dict() for group in day_groups],
        }
    except Exception as e:
        console.print(f"[red]Error fetching artifacts: {e}[/red]")
        raise ServerError("Failed to fetch artifacts", str(e))


@app.post("/api/artifacts")
async def create_artifact(
    request: ArtifactCreateRequest,
    storage: Storage = Depends(get_storage),
    user_id: str = Depends(get_user_id),
) -> dict:
    """Capture a new artifact in the pending state.

    Stored as-is; enrichment happens separately through /process.
    """
    try:
        artifact = build_artifact(
            user_id,
            request.type,
            request.content,
            title=request.title,
            source_url=request.sourceUrl,
            image_data=request.imageData,
            tags=request.tags,
        )
        storage.save_artifact(artifact)
    except Exception as e:
        console.print(f"[red]Error creating artifact: {e}[/red]")
        raise ServerError("Failed to create artifact", str(e))

    obs_log("artifact.created", artifact_id=artifact.id, type=artifact.type, via="api")
    return artifact.to_dict()


@app.get("/api/artifacts/{artifact_id}")
async def get_artifact(
    artifact_id: str, storage: Storage = Depends(get_storage)
) -> dict:
    """Get a single artifact."""
    artifact = storage.get_artifact(artifact_id)
    if artifact is None:
        raise NotFoundError("Artifact")
    return artifact.to_dict()


@app.patch("/api/artifacts/{artifact_id}")
async def update_artifact(
    artifact_id: str,
    request: ArtifactUpdateRequest,
    storage: Storage = Depends(get_storage),
) -> dict:
    """Change an artifact's status, optionally storing summary/title/tags."""
    try:
        updated = storage.update_artifact_status(
            artifact_id, request.status, request.patch()
        )
    except Exception as e:
        console.print(f"[red]Error updating artifact: {e}[/red]")
        raise ServerError("Failed to update artifact", str(e))

    if updated is None:
        raise NotFoundError("Artifact")

    obs_log("artifact.status", artifact_id=artifact_id, status=request.status)
    return updated.to_dict()


@app.delete("/api/artifacts/{artifact_id}")
async def delete_artifact(
    artifact_id: str, storage: Storage = Depends(get_storage)
) -> dict:
    """Delete an artifact."""
    try:
        deleted = storage.delete_artifact(artifact_id)
    except Exception as e:
        console.print(f"[red]Error deleting artifact: {e}[/red]")
        raise ServerError("Failed to delete artifact", str(e))

    if not deleted:
        raise NotFoundError("Artifact")
    return {"success": True}


@app.post("/api/artifacts/{artifact_id}/process")
def process_artifact(
    artifact_id: str,
    storage: Storage = Depends(get_storage),
    enricher: ContentEnricher = Depends(get_enricher),
) -> dict:
    """Enrich an artifact with a summary (pending -> processing -> ready).

    Runs in the threadpool; the model calls block.
    """
    artifact = storage.get_artifact(artifact_id)
    if artifact is None:
        raise NotFoundError("Artifact")

    try:
        enriched = enricher.enrich(storage, artifact)
    except Exception as e:
        console.print(f"[red]Error processing artifact: {e}[/red]")
        raise ServerError("Failed to process artifact", str(e))

    if enriched is None:
        raise NotFoundError("Artifact")
    return enriched.to_dict()


@app.post("/api/tts")
def text_to_speech(
    request: TTSRequest,
    storage: Storage = Depends(get_storage),
    enricher: ContentEnricher = Depends(get_enricher),
    synthesizer: SpeechSynthesizer = Depends(get_synthesizer),
) -> Response:
    """Speak an artifact's summary or full text as MP3 (runs in the threadpool)."""
    if not request.artifactId:
        raise ValidationError("Artifact ID is required")

    artifact = storage.get_artifact(request.artifactId)
    if artifact is None:
        raise NotFoundError("Artifact")

    try:
        text = speech_text(artifact, request.mode, enricher, storage)
        audio = synthesizer.synthesize(text)
    except Exception as e:
        console.print(f"[red]TTS error: {e}[/red]")
        raise ServerError("Failed to generate audio", str(e))

    return Response(
        content=audio,
        media_type="audio/mpeg",
        headers={"Content-Length": str(len(audio))},
    )


@app.post("/api/mcp")
async def mcp_endpoint(
    request: Request,
    config: Config = Depends(get_config),
    storage: Storage = Depends(get_storage),
    enricher: ContentEnricher = Depends(get_enricher),
) -> JSONResponse:
    """JSON-RPC endpoint for the assistant's tool calls.

    Always answers HTTP 200; failures travel in the JSON-RPC error object.
    """
    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(error_response(None, PARSE_ERROR, "Parse error"))

    ctx = ToolContext(
        storage=storage,
        enricher=enricher,
        user_id=config.user_id,
        base_url=public_base_url(request, config),
    )
    # Tool calls may hit the model; keep them off the event loop
    return JSONResponse(await run_in_threadpool(handle_request, ctx, body))


@app.get("/api/mcp")
async def mcp_stream() -> StreamingResponse:
    """One-shot event stream announcing the server is ready."""

    async def events():
        yield connection_ready_event()

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
