import asyncio
import base64
import sys

import pytest

from fakes import (
    GARMENT_B64,
    GARMENT_BYTES,
    PNG_B64,
    PNG_BYTES,
    RESULT_BYTES,
    FakeModel,
    image_part,
    model_response,
    text_part,
)
from tryon.compose import (
    CompositionOrchestrator,
    InlineImagePart,
    OtherPart,
    TextPart,
    build_contents,
    classify_part,
    load_image_model,
    strip_data_uri,
)
from tryon.config import Settings
from tryon.errors import ClientUnavailable, MissingCredential, MissingImages, NoImageReturned, UpstreamError
from tryon.prompts import TRYON_PROMPT
from tryon.schemas import TryOnPayload


def compose(orchestrator, user_image=PNG_B64, cloth_image=GARMENT_B64):
    return asyncio.run(orchestrator.compose(TryOnPayload(userImage=user_image, clothImage=cloth_image)))


# ---------------------------------------------------------
# Validation order
# ---------------------------------------------------------
@pytest.mark.parametrize(
    "user_image, cloth_image",
    [(PNG_B64, ""), ("", GARMENT_B64), (None, GARMENT_B64), (PNG_B64, None), (None, None)],
)
def test_missing_image_fails_without_calling_model(settings, user_image, cloth_image):
    model = FakeModel(response=model_response(image_part(RESULT_BYTES)))
    with pytest.raises(MissingImages) as exc:
        compose(CompositionOrchestrator(settings, model=model), user_image, cloth_image)
    assert exc.value.status_code == 400
    assert exc.value.message == "Both images are required."
    assert model.calls == []


def test_missing_images_reported_before_missing_key(bare_settings):
    with pytest.raises(MissingImages):
        compose(CompositionOrchestrator(bare_settings), PNG_B64, "")


def test_missing_key(bare_settings):
    model = FakeModel(response=model_response(image_part(RESULT_BYTES)))
    with pytest.raises(MissingCredential) as exc:
        compose(CompositionOrchestrator(bare_settings, model=model))
    assert exc.value.message == "Server misconfigured: missing GENAI_API_KEY"
    assert model.calls == []


def test_client_unavailable(settings):
    reason = "GenAI SDK not installed on server or failed to import: No module named 'google'"
    with pytest.raises(ClientUnavailable) as exc:
        compose(CompositionOrchestrator(settings, model=None, unavailable_reason=reason))
    assert exc.value.status_code == 500
    assert exc.value.message == reason


def test_load_image_model_without_key_builds_nothing(bare_settings):
    assert load_image_model(bare_settings) is None
    orchestrator = CompositionOrchestrator.from_settings(bare_settings)
    assert orchestrator.model is None
    assert orchestrator.unavailable_reason is None


# ---------------------------------------------------------
# Request construction
# ---------------------------------------------------------
def test_request_is_prompt_then_user_then_garment(settings):
    model = FakeModel(response=model_response(image_part(RESULT_BYTES)))
    compose(CompositionOrchestrator(settings, model=model))

    assert len(model.calls) == 1
    contents, kwargs = model.calls[0]
    assert contents == [
        TRYON_PROMPT,
        {"mime_type": "image/png", "data": PNG_BYTES},
        {"mime_type": "image/png", "data": GARMENT_BYTES},
    ]
    assert kwargs["generation_config"]["candidate_count"] == 1
    assert kwargs["request_options"] == {"timeout": settings.generate_timeout}


def test_prompt_keeps_identity_and_uses_garment_only_as_reference():
    assert "FIRST image" in TRYON_PROMPT
    assert "SECOND image" in TRYON_PROMPT
    assert "face, hair, skin tone, body shape, and pose" in TRYON_PROMPT
    assert "Do not add watermarks, text, or extra people." in TRYON_PROMPT


@pytest.mark.parametrize("fmt", ["png", "jpeg", "webp"])
def test_data_uri_and_bare_base64_build_the_same_request(fmt):
    data_uri = f"data:image/{fmt};base64,{PNG_B64}"
    assert strip_data_uri(data_uri) == PNG_B64
    assert strip_data_uri(PNG_B64) == PNG_B64
    assert build_contents(data_uri, GARMENT_B64) == build_contents(PNG_B64, GARMENT_B64)


def test_data_uri_inputs_are_accepted(settings):
    model = FakeModel(response=model_response(image_part(RESULT_BYTES)))
    compose(
        CompositionOrchestrator(settings, model=model),
        f"data:image/jpeg;base64,{PNG_B64}",
        f"data:image/png;base64,{GARMENT_B64}",
    )
    contents, _ = model.calls[0]
    assert contents[1]["data"] == PNG_BYTES
    assert contents[2]["data"] == GARMENT_BYTES


# ---------------------------------------------------------
# Response extraction
# ---------------------------------------------------------
def test_text_then_image_returns_the_image(settings):
    model = FakeModel(response=model_response(text_part("Here is your look"), image_part(RESULT_BYTES)))
    result = compose(CompositionOrchestrator(settings, model=model))
    assert result.image == "data:image/png;base64," + base64.b64encode(RESULT_BYTES).decode("ascii")


def test_first_image_wins(settings):
    model = FakeModel(response=model_response(image_part(b"first"), image_part(b"second")))
    result = compose(CompositionOrchestrator(settings, model=model))
    assert result.image == "data:image/png;base64," + base64.b64encode(b"first").decode("ascii")


def test_mime_type_is_not_taken_from_response(settings):
    model = FakeModel(response=model_response(image_part(RESULT_BYTES, mime_type="image/jpeg")))
    result = compose(CompositionOrchestrator(settings, model=model))
    assert result.image.startswith("data:image/png;base64,")


def test_mapping_shaped_parts_are_scanned(settings):
    response = {
        "candidates": [
            {"content": {"parts": [{"text": "ok"}, {"inlineData": {"mimeType": "image/png", "data": "QUJD"}}]}}
        ]
    }
    result = compose(CompositionOrchestrator(settings, model=FakeModel(response=response)))
    assert result.image == "data:image/png;base64,QUJD"


@pytest.mark.parametrize(
    "response",
    [
        model_response(text_part("I can't help with that.")),
        model_response(),
        model_response(image_part(b"")),
        {"candidates": []},
        None,
    ],
)
def test_no_image_part(settings, response):
    with pytest.raises(NoImageReturned) as exc:
        compose(CompositionOrchestrator(settings, model=FakeModel(response=response)))
    assert exc.value.message == "No image returned from model."
    assert exc.value.status_code == 500


def test_classify_part():
    assert classify_part(text_part("hi")) == TextPart(text="hi")
    assert classify_part(image_part(b"x")) == InlineImagePart(mime_type="image/png", data=b"x")
    assert isinstance(classify_part(object()), OtherPart)


# ---------------------------------------------------------
# Upstream failures
# ---------------------------------------------------------
def test_model_error_is_upstream_error(settings):
    model = FakeModel(error=RuntimeError("429 Resource has been exhausted"))
    with pytest.raises(UpstreamError) as exc:
        compose(CompositionOrchestrator(settings, model=model))
    assert exc.value.message == "429 Resource has been exhausted"
    assert exc.value.status_code == 500
    assert exc.value.to_payload() == {"error": "429 Resource has been exhausted"}


def test_model_timeout_is_upstream_error():
    settings = Settings(genai_api_key="genai-key", generate_timeout=0.01)
    model = FakeModel(response=model_response(image_part(RESULT_BYTES)), delay=1.0)
    with pytest.raises(UpstreamError) as exc:
        compose(CompositionOrchestrator(settings, model=model))
    assert "timed out" in exc.value.message
    assert len(model.calls) == 1


def test_sdk_import_failure_is_client_unavailable(settings, monkeypatch):
    monkeypatch.setitem(sys.modules, "google.generativeai", None)
    with pytest.raises(ClientUnavailable) as exc:
        load_image_model(settings)
    assert exc.value.message.startswith("GenAI SDK not installed on server or failed to import: ")

    orchestrator = CompositionOrchestrator.from_settings(settings)
    assert orchestrator.model is None
    with pytest.raises(ClientUnavailable):
        compose(orchestrator)
