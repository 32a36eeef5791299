"""Unit tests for ContentEnricher - LLM calls are mocked."""

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from drivetime.enrichment import ContentEnricher, html_to_text, parse_json_object
from drivetime.lifecycle import apply_status

CONFIG = {"model": "gpt-4o-mini", "vision_model": "gpt-4o", "api_key": "sk-test"}


def llm_response(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class FakeStorage:
    """Records status updates and returns the patched artifact."""

    def __init__(self, artifact):
        self.artifact = artifact
        self.updates = []

    def update_artifact_status(self, artifact_id, status, patch=None):
        self.updates.append((status, dict(patch or {})))
        self.artifact = apply_status(self.artifact, status, patch)
        return self.artifact

    def set_full_audio_text(self, artifact_id, text):
        self.updates.append(("full_audio_text", text))
        self.artifact = replace(self.artifact, full_audio_text=text)
        return True


@pytest.fixture
def enricher() -> ContentEnricher:
    return ContentEnricher(CONFIG, retry_delay=0)


def test_requires_model() -> None:
    with pytest.raises(ValueError, match="Model must be specified"):
        ContentEnricher({})


def test_parse_json_object() -> None:
    assert parse_json_object('Sure! {"title": "T", "content": "C"} done') == {
        "title": "T",
        "content": "C",
    }
    assert parse_json_object("no json here") is None
    assert parse_json_object("{broken") is None


def test_html_to_text_strips_scripts_and_tags() -> None:
    html = "<html><script>var x=1;</script><p>Hello <b>road</b></p></html>"
    assert html_to_text(html) == "Hello road"


def test_summarize_passes_credentials(enricher: ContentEnricher) -> None:
    with patch("drivetime.enrichment.litellm.completion") as completion:
        completion.return_value = llm_response("  A short spoken summary.  ")

        result = enricher.summarize("Long text", "idea")

    assert result == "A short spoken summary."
    kwargs = completion.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["api_key"] == "sk-test"
    assert kwargs["max_tokens"] == 300
    assert "idea" in kwargs["messages"][0]["content"]


def test_summarize_empty_answer_falls_back(enricher: ContentEnricher) -> None:
    with patch("drivetime.enrichment.litellm.completion") as completion:
        completion.return_value = llm_response(None)

        result = enricher.summarize("x" * 800, "note")

    assert result == "x" * 500


def test_single_retry_then_success(enricher: ContentEnricher) -> None:
    """
    INVARIANT: A failed model call is retried exactly once
    BREAKS: Transient provider errors fail the whole enrichment
    """
    with patch("drivetime.enrichment.litellm.completion") as completion:
        completion.side_effect = [RuntimeError("rate limited"), llm_response("ok")]

        assert enricher.summarize("text", "note") == "ok"

    assert completion.call_count == 2


def test_second_failure_propagates(enricher: ContentEnricher) -> None:
    with patch("drivetime.enrichment.litellm.completion") as completion:
        completion.side_effect = RuntimeError("down")

        with pytest.raises(RuntimeError, match="down"):
            enricher.summarize("text", "note")

    assert completion.call_count == 2


def test_screenshot_uses_vision_model(enricher: ContentEnricher) -> None:
    with patch("drivetime.enrichment.litellm.completion") as completion:
        completion.return_value = llm_response(
            '{"title": "Sprint board", "content": "Three tickets left"}'
        )

        result = enricher.extract_from_screenshot("aGVsbG8=")

    assert result == {"title": "Sprint board", "content": "Three tickets left"}
    kwargs = completion.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    image_part = kwargs["messages"][0]["content"][1]
    assert image_part["image_url"]["url"] == "data:image/png;base64,aGVsbG8="


def test_screenshot_non_json_answer(enricher: ContentEnricher) -> None:
    with patch("drivetime.enrichment.litellm.completion") as completion:
        completion.return_value = llm_response("Just some text")

        result = enricher.extract_from_screenshot("aGVsbG8=")

    assert result == {"title": "Screenshot", "content": "Just some text"}


def test_extract_url_falls_back_to_page_text(enricher: ContentEnricher) -> None:
    with patch.object(enricher, "fetch_page_text", return_value="Page body"), patch(
        "drivetime.enrichment.litellm.completion"
    ) as completion:
        completion.return_value = llm_response("not json")

        result = enricher.extract_url("https://example.com/a")

    assert result == {"title": "https://example.com/a", "content": "Page body"}


def test_fetch_page_text_uses_fallback_extraction(enricher: ContentEnricher) -> None:
    response = MagicMock()
    response.text = "<html><body><p>Plain page</p></body></html>"
    client = MagicMock()
    client.__enter__.return_value.get.return_value = response

    with patch("drivetime.enrichment.httpx.Client", return_value=client), patch(
        "drivetime.enrichment.extract", return_value=None
    ):
        text = enricher.fetch_page_text("https://example.com")

    assert text == "Plain page"
    response.raise_for_status.assert_called_once()


def test_enrich_note_moves_to_ready(enricher: ContentEnricher, make_artifact) -> None:
    """
    INVARIANT: Enrichment goes processing -> ready and stores the summary
    BREAKS: Items stay pending forever or lose their summary
    """
    storage = FakeStorage(make_artifact(raw_content="Idea about carpools"))

    with patch("drivetime.enrichment.litellm.completion") as completion:
        completion.return_value = llm_response("Carpool summary.")

        result = enricher.enrich(storage, storage.artifact)

    assert [status for status, _ in storage.updates] == ["processing", "ready"]
    assert result.status == "ready"
    assert result.summary == "Carpool summary."


def test_enrich_url_replaces_title(enricher: ContentEnricher, make_artifact) -> None:
    artifact = make_artifact(
        type="article",
        title="https://example.com/a",
        raw_content="https://example.com/a",
        source_url="https://example.com/a",
    )
    storage = FakeStorage(artifact)

    with patch.object(
        enricher,
        "extract_url",
        return_value={"title": "Real Title", "content": "Article text"},
    ), patch.object(enricher, "summarize", return_value="Summary") as summarize:
        result = enricher.enrich(storage, artifact)

    summarize.assert_called_once_with("Article text", "article")
    assert result.title == "Real Title"
    assert result.summary == "Summary"


def test_enrich_failure_restores_status(enricher: ContentEnricher, make_artifact) -> None:
    """
    INVARIANT: A failed enrichment does not leave the artifact in processing
    BREAKS: Item disappears from the queue after a provider outage
    """
    storage = FakeStorage(make_artifact(status="pending"))

    with patch.object(enricher, "summarize", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError):
            enricher.enrich(storage, storage.artifact)

    assert [status for status, _ in storage.updates] == ["processing", "pending"]
    assert storage.artifact.status == "pending"


def test_full_audio_text_cached(enricher: ContentEnricher, make_artifact) -> None:
    """
    INVARIANT: Full audio text is generated once, then reused
    BREAKS: Every replay pays for another LLM expansion
    """
    artifact = make_artifact(status="ready")
    storage = FakeStorage(artifact)

    with patch.object(enricher, "expand_for_audio", return_value="Long script") as expand:
        assert enricher.full_audio_text(storage, artifact) == "Long script"
        assert enricher.full_audio_text(storage, storage.artifact) == "Long script"

    expand.assert_called_once()
    assert storage.updates == [("full_audio_text", "Long script")]
    assert storage.artifact.status == "ready"
