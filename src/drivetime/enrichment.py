"""AI enrichment of captured artifacts: summaries, audio scripts, extraction."""

import json
import logging
import re
import time
from typing import Any, Dict, List, Optional

import httpx
import litellm
from trafilatura import extract

from .lifecycle import ArtifactStatus
from .models import Artifact, ArtifactType
from .observability import log as obs_log

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = """You are a helpful assistant that creates concise, audio-friendly summaries.
The summary should be:
- 2-3 sentences max
- Written to be spoken aloud (natural speech patterns)
- Capture the key insight or main point
- Engaging and conversational

The content type is: {content_type}"""

EXPAND_SYSTEM_PROMPT = """You are a helpful assistant that prepares content for audio playback.
Transform the content to be:
- Natural and conversational for spoken delivery
- Well-structured with clear transitions
- Engaging to listen to
- Complete but not overly long (aim for 1-2 minutes of speaking)

The content type is: {content_type}"""

SCREENSHOT_PROMPT = """Analyze this screenshot and extract the key information.
Return a JSON object with:
- "title": A brief title (5-10 words)
- "content": The main text/information visible, formatted for reading

Return only valid JSON."""

URL_SYSTEM_PROMPT = """Extract the main article content from this webpage text.
Return a JSON object with:
- "title": The article/page title
- "content": The main content, cleaned up and formatted

Return only valid JSON."""

PAGE_TEXT_LIMIT = 10000


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Pull the first {...} block out of a model answer and parse it."""
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        return None
    try:
        result = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return result if isinstance(result, dict) else None


def html_to_text(html: str) -> str:
    """Crude tag stripper used when trafilatura finds no article body."""
    text = re.sub(r"<script[^>]*>.*?</script>", " ", html, flags=re.DOTALL | re.I)
    text = re.sub(r"<style[^>]*>.*?</style>", " ", text, flags=re.DOTALL | re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    return re.sub(r"\s+", " ", text).strip()


class ContentEnricher:
    """Generate summaries and audio scripts for artifacts through litellm.

    Every model call gets one retry after a short backoff; a second failure
    propagates to the caller.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        retry_delay: float = 1.0,
        http_timeout: float = 30.0,
    ):
        """Initialize the enricher with LLM configuration.

        Args:
            config: Dict with:
                - model: LLM model name for text tasks
                - vision_model: Model for screenshots (defaults to model)
                - api_key: Optional API key for the provider
                - api_base: Optional base URL (Ollama and custom endpoints)
            retry_delay: Seconds to wait before the single retry
            http_timeout: Timeout for fetching captured URLs
        """
        if not config or "model" not in config:
            raise ValueError("Model must be specified in config")

        self.config = config
        self.model = config["model"]
        self.vision_model = config.get("vision_model") or self.model
        self.api_key = config.get("api_key")
        self.api_base = config.get("api_base")
        self.retry_delay = retry_delay
        self.http_timeout = http_timeout

        litellm.drop_params = True  # Drop unsupported params instead of erroring

    def _complete(
        self,
        messages: List[Dict[str, Any]],
        action: str,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        """Call the model and return the answer text ('' when empty).

        Raises:
            Exception: Whatever litellm raised on the second failed attempt
        """
        kwargs: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        for attempt in range(2):
            start_time = time.time()
            try:
                response = litellm.completion(**kwargs)
            except Exception as e:
                duration_ms = int((time.time() - start_time) * 1000)
                obs_log(
                    "llm.call",
                    action=action,
                    model=kwargs["model"],
                    status="error",
                    error=str(e),
                    attempt=attempt + 1,
                    duration_ms=duration_ms,
                )
                if attempt == 0:
                    logger.warning(f"LLM call '{action}' failed, retrying: {e}")
                    time.sleep(self.retry_delay)
                    continue
                logger.error(f"LLM call '{action}' failed: {e}")
                raise

            obs_log(
                "llm.call",
                action=action,
                model=kwargs["model"],
                status="success",
                attempt=attempt + 1,
                duration_ms=int((time.time() - start_time) * 1000),
            )
            content = response.choices[0].message.content if response.choices else None
            return (content or "").strip()

        return ""  # pragma: no cover

    def summarize(self, content: str, content_type: str) -> str:
        """Create a 2-3 sentence spoken summary.

        Falls back to the first 500 characters when the model returns nothing.
        """
        text = self._complete(
            [
                {
                    "role": "system",
                    "content": SUMMARY_SYSTEM_PROMPT.format(content_type=content_type),
                },
                {
                    "role": "user",
                    "content": f"Please summarize this for audio playback:\n\n{content}",
                },
            ],
            action="summarize",
            max_tokens=300,
        )
        return text or content[:500]

    def expand_for_audio(self, content: str, content_type: str) -> str:
        """Rewrite content as a 1-2 minute spoken piece (falls back to content)."""
        text = self._complete(
            [
                {
                    "role": "system",
                    "content": EXPAND_SYSTEM_PROMPT.format(content_type=content_type),
                },
                {
                    "role": "user",
                    "content": f"Please prepare this for audio playback:\n\n{content}",
                },
            ],
            action="expand",
            max_tokens=1000,
        )
        return text or content

    def extract_from_screenshot(self, image_base64: str) -> Dict[str, str]:
        """Read title and text off a base64 PNG screenshot with the vision model."""
        text = self._complete(
            [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": SCREENSHOT_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/png;base64,{image_base64}"},
                        },
                    ],
                }
            ],
            action="extract_screenshot",
            max_tokens=1000,
            model=self.vision_model,
        )

        result = parse_json_object(text)
        if result and result.get("content"):
            return {
                "title": str(result.get("title") or "Screenshot"),
                "content": str(result["content"]),
            }
        return {"title": "Screenshot", "content": text}

    def fetch_page_text(self, url: str) -> str:
        """Download a page and extract its main text.

        Raises:
            httpx.HTTPError: If the page cannot be fetched
        """
        with httpx.Client(timeout=self.http_timeout, follow_redirects=True) as client:
            response = client.get(url)
            response.raise_for_status()
            html = response.text

        content = extract(
            html,
            include_comments=False,
            include_tables=True,
            no_fallback=False,
        )
        if not content:
            logger.debug(f"Trafilatura extraction failed for {url}, using fallback")
            content = html_to_text(html)

        return content[:PAGE_TEXT_LIMIT]

    def extract_url(self, url: str) -> Dict[str, str]:
        """Fetch a captured URL and have the model pull out title and article text."""
        page_text = self.fetch_page_text(url)

        text = self._complete(
            [
                {"role": "system", "content": URL_SYSTEM_PROMPT},
                {"role": "user", "content": page_text},
            ],
            action="extract_url",
            max_tokens=2000,
        )

        result = parse_json_object(text)
        if result and result.get("content"):
            return {
                "title": str(result.get("title") or url),
                "content": str(result["content"]),
            }
        return {"title": url, "content": page_text[:2000]}

    def full_audio_text(self, storage, artifact: Artifact) -> str:
        """Return the long-form audio text, expanding and storing it on first use.

        Only the text column is written; the artifact's status is whatever
        the caller last stored.

        Args:
            storage: Storage used to persist the expansion
            artifact: Artifact to read

        Returns:
            Stored full_audio_text, or a fresh expansion of raw_content
        """
        if artifact.full_audio_text:
            return artifact.full_audio_text

        text = self.expand_for_audio(artifact.raw_content, artifact.type)
        storage.set_full_audio_text(artifact.id, text)
        return text

    def enrich(self, storage, artifact: Artifact) -> Optional[Artifact]:
        """Run the enrichment pass: pending -> processing -> ready.

        Screenshots and URLs are extracted first; the extracted title
        replaces the truncated capture title. On failure the artifact's
        previous status is restored and the error propagates.

        Args:
            storage: Storage to write status changes through
            artifact: Artifact to enrich

        Returns:
            The enriched Artifact, or None if it disappeared meanwhile
        """
        previous_status = artifact.status
        storage.update_artifact_status(artifact.id, ArtifactStatus.PROCESSING.value)

        try:
            patch: Dict[str, Any] = {}
            if artifact.image_data:
                extracted = self.extract_from_screenshot(artifact.image_data)
                patch["title"] = extracted["title"]
                source_text = extracted["content"]
            elif artifact.source_url:
                extracted = self.extract_url(artifact.source_url)
                patch["title"] = extracted["title"]
                source_text = extracted["content"]
            else:
                source_text = artifact.raw_content

            content_type = artifact.type or ArtifactType.NOTE.value
            patch["summary"] = self.summarize(source_text, content_type)
        except Exception:
            storage.update_artifact_status(artifact.id, previous_status)
            raise

        enriched = storage.update_artifact_status(
            artifact.id, ArtifactStatus.READY.value, patch
        )
        logger.info(f"Enriched artifact {artifact.id} ({artifact.type})")
        return enriched
