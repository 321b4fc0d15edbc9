"""Replicate provider tests with a fake SDK client and a mocked download."""

import httpx
import pytest

from artmorph.services.exceptions import (
    ProviderFailureError,
    ProviderPermissionDeniedError,
    ProviderTimeoutError,
)
from artmorph.services.image_generation.base import GenerationParams
from artmorph.services.image_generation.replicate_client import ReplicateProvider
from conftest import JPEG_BYTES, PNG_BYTES

OUTPUT_URL = "https://replicate.delivery/pbxt/output.jpg"


class FakePrediction:
    def __init__(self, statuses, output=None, error=None):
        self.id = "pred-123"
        self._statuses = list(statuses)
        self.status = self._statuses.pop(0)
        self.output = output
        self.error = error
        self.canceled = False

    def reload(self):
        if self._statuses:
            self.status = self._statuses.pop(0)

    def cancel(self):
        self.canceled = True


class FakePredictions:
    def __init__(self, prediction):
        self.prediction = prediction
        self.created = []

    def create(self, model, input):
        self.created.append({"model": model, "input": input})
        return self.prediction


class FakeReplicateClient:
    def __init__(self, prediction):
        self.predictions = FakePredictions(prediction)


class FileOutput:
    def __init__(self, url):
        self.url = url


def download_transport(status_code=200, content=JPEG_BYTES, content_type="image/jpeg"):
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == OUTPUT_URL
        return httpx.Response(status_code, content=content, headers={"content-type": content_type})

    return httpx.MockTransport(handler)


def make_provider(prediction, transport=None, **kwargs):
    client = FakeReplicateClient(prediction)
    provider = ReplicateProvider(
        api_token="",
        model="black-forest-labs/flux-kontext-dev",
        poll_interval_seconds=0.001,
        client=client,
        transport=transport or download_transport(),
        **kwargs,
    )
    return provider, client


@pytest.mark.asyncio
async def test_successful_prediction_downloads_output():
    prediction = FakePrediction(["starting", "processing", "succeeded"], output=[FileOutput(OUTPUT_URL)])
    provider, client = make_provider(prediction)

    result = await provider.generate(
        GenerationParams(model="ignored", prompt="ink sketch", input_image=PNG_BYTES, seed=5)
    )

    assert result.image == JPEG_BYTES
    assert result.content_type == "image/jpeg"
    created = client.predictions.created[0]
    assert created["model"] == "black-forest-labs/flux-kontext-dev"
    assert created["input"]["prompt"] == "ink sketch"
    assert created["input"]["seed"] == 5
    assert created["input"]["input_image"].startswith("data:image/png;base64,")


@pytest.mark.asyncio
async def test_string_output_and_sniffed_content_type():
    prediction = FakePrediction(["succeeded"], output=OUTPUT_URL)
    provider, _ = make_provider(
        prediction, transport=download_transport(content=PNG_BYTES, content_type="application/octet-stream")
    )

    result = await provider.generate(GenerationParams(model="m", prompt="p", input_image=PNG_BYTES))

    assert result.content_type == "image/png"


@pytest.mark.asyncio
async def test_prediction_timeout_cancels_and_raises():
    prediction = FakePrediction(["starting"])
    provider, _ = make_provider(prediction, timeout_seconds=0.02)

    with pytest.raises(ProviderTimeoutError, match="timed out"):
        await provider.generate(GenerationParams(model="m", prompt="p", input_image=PNG_BYTES))

    assert prediction.canceled is True


@pytest.mark.asyncio
async def test_failed_prediction_is_classified():
    prediction = FakePrediction(["failed"], error="This model is gated; accept the terms first")
    provider, _ = make_provider(prediction)

    with pytest.raises(ProviderPermissionDeniedError):
        await provider.generate(GenerationParams(model="m", prompt="p", input_image=PNG_BYTES))


@pytest.mark.asyncio
async def test_empty_output_fails():
    prediction = FakePrediction(["succeeded"], output=[])
    provider, _ = make_provider(prediction)

    with pytest.raises(ProviderFailureError, match="empty output"):
        await provider.generate(GenerationParams(model="m", prompt="p", input_image=PNG_BYTES))


@pytest.mark.asyncio
async def test_missing_token_is_permission_error():
    provider = ReplicateProvider(api_token="", model="m")

    assert provider.is_configured is False
    with pytest.raises(ProviderPermissionDeniedError):
        await provider.generate(GenerationParams(model="m", prompt="p", input_image=PNG_BYTES))


def test_conditioning_inputs_only_when_set():
    provider = ReplicateProvider(api_token="token", model="m")

    plain = provider.build_input(GenerationParams(model="m", prompt="p", input_image=PNG_BYTES))
    conditioned = provider.build_input(
        GenerationParams(
            model="m",
            prompt="p",
            input_image=PNG_BYTES,
            negative_prompt="blurry",
            control_image=PNG_BYTES,
            controlnet_conditioning_scale=0.7,
            provider_options={"replicate": {"model": "other/model", "go_fast": True}},
        )
    )

    assert "control_image" not in plain
    assert "negative_prompt" not in plain
    assert conditioned["negative_prompt"] == "blurry"
    assert conditioned["controlnet_conditioning_scale"] == 0.7
    assert conditioned["go_fast"] is True
    assert "model" not in conditioned
