"""Replicate image-to-image provider (primary backend).

Flow: create a prediction, receive its id, poll until a terminal status or the
time budget runs out, then download the output asset.
"""

import asyncio
from typing import Any, Optional

import httpx
import replicate
import structlog

from artmorph.services.exceptions import (
    ProviderError,
    ProviderFailureError,
    ProviderPermissionDeniedError,
    ProviderTimeoutError,
)
from artmorph.services.image_generation.base import (
    GenerationParams,
    GenerationResult,
    classify_error,
    detect_content_type,
    to_data_uri,
)

logger = structlog.get_logger(__name__)

TERMINAL_PREDICTION_STATUSES = ("succeeded", "failed", "canceled")


class ReplicateProvider:
    """Primary provider backed by the Replicate predictions API.

    The Replicate SDK is synchronous, so every SDK call runs in a worker thread.
    """

    name = "replicate"

    def __init__(
        self,
        api_token: str,
        model: str,
        timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 1.0,
        download_timeout_seconds: float = 30.0,
        client: Optional[Any] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Replicate provider.

        Args:
            api_token: Replicate API token (REPLICATE_API_TOKEN); empty disables the provider
            model: Replicate model identifier (e.g. "black-forest-labs/flux-kontext-dev")
            timeout_seconds: Budget from prediction creation to terminal status
            poll_interval_seconds: Delay between status polls
            download_timeout_seconds: Timeout for fetching the output file
            client: Preconfigured SDK client (tests inject a fake)
            transport: httpx transport used for the output download (tests inject a mock)
        """
        self.api_token = api_token
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.download_timeout_seconds = download_timeout_seconds
        self._client = client
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token) or self._client is not None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = replicate.Client(api_token=self.api_token)
        return self._client

    def build_input(self, params: GenerationParams) -> dict[str, Any]:
        """Translate neutral parameters into the model's input schema.

        Conditioning inputs are included only when the caller set them.
        """
        payload: dict[str, Any] = {
            "prompt": params.prompt,
            "input_image": to_data_uri(params.input_image),
            "output_format": "png",
        }
        if params.guidance_scale is not None:
            payload["guidance"] = params.guidance_scale
        if params.num_inference_steps is not None:
            payload["num_inference_steps"] = params.num_inference_steps
        if params.strength is not None:
            payload["prompt_strength"] = params.strength
        if params.seed is not None:
            payload["seed"] = params.seed
        if params.negative_prompt:
            payload["negative_prompt"] = params.negative_prompt
        if params.control_image is not None:
            payload["control_image"] = to_data_uri(params.control_image)
            if params.controlnet_conditioning_scale is not None:
                payload["controlnet_conditioning_scale"] = params.controlnet_conditioning_scale

        options = params.options_for(self.name)
        options.pop("model", None)
        payload.update(options)
        return payload

    async def generate(self, params: GenerationParams) -> GenerationResult:
        """Generate an image using Replicate.

        Args:
            params: Provider-neutral generation parameters

        Returns:
            Output image bytes and content type

        Raises:
            ProviderTimeoutError: Prediction did not finish within timeout_seconds
            ProviderBusyError: Rate limited or capacity exhausted
            ProviderPermissionDeniedError: Token missing or rejected
            ProviderFailureError: Any other failure
        """
        if not self.is_configured:
            raise ProviderPermissionDeniedError("REPLICATE_API_TOKEN not configured", provider=self.name)

        model = params.options_for(self.name).get("model") or self.model
        payload = self.build_input(params)

        try:
            client = self._get_client()
            prediction = await asyncio.to_thread(
                client.predictions.create, model=model, input=payload
            )
            logger.info("replicate.prediction.created", prediction_id=prediction.id, model=model)

            prediction = await self._wait_for_prediction(prediction)
            image_url = self._extract_output_url(prediction.output)
            return await self._download(image_url)

        except ProviderError:
            raise

        except Exception as e:
            # SDK, network and unexpected errors are all classified
            raise classify_error(e, self.name) from e

    async def _wait_for_prediction(self, prediction: Any) -> Any:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds

        while prediction.status not in TERMINAL_PREDICTION_STATUSES:
            if loop.time() >= deadline:
                await self._cancel_quietly(prediction)
                raise ProviderTimeoutError(
                    f"Generation timed out after {self.timeout_seconds:g}s "
                    f"(replicate prediction {prediction.id})",
                    provider=self.name,
                )
            await asyncio.sleep(self.poll_interval_seconds)
            await asyncio.to_thread(prediction.reload)

        if prediction.status == "failed":
            raise classify_error(
                RuntimeError(prediction.error or "Prediction failed without error detail"),
                self.name,
            )
        if prediction.status == "canceled":
            raise ProviderFailureError(
                f"Replicate prediction {prediction.id} was canceled", provider=self.name
            )

        logger.info("replicate.prediction.succeeded", prediction_id=prediction.id)
        return prediction

    async def _cancel_quietly(self, prediction: Any) -> None:
        try:
            await asyncio.to_thread(prediction.cancel)
        except Exception as e:
            logger.warning(
                "replicate.prediction.cancel_failed",
                prediction_id=prediction.id,
                error=str(e),
            )

    def _extract_output_url(self, output: Any) -> str:
        # Output format varies by model: a URL, a list of URLs or FileOutput objects
        if isinstance(output, (list, tuple)):
            if not output:
                raise ProviderFailureError("Replicate returned an empty output list", provider=self.name)
            output = output[0]
        url = getattr(output, "url", output)
        if not isinstance(url, str) or not url:
            raise ProviderFailureError(
                f"Unexpected output format from Replicate: {type(output).__name__}",
                provider=self.name,
            )
        return url

    async def _download(self, url: str) -> GenerationResult:
        async with httpx.AsyncClient(
            timeout=self.download_timeout_seconds, transport=self._transport
        ) as client:
            response = await client.get(url)
            if response.status_code >= 400:
                raise classify_error(
                    RuntimeError(f"Output download failed with status {response.status_code}"),
                    self.name,
                )
            image = response.content

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = detect_content_type(image)
        return GenerationResult(image=image, content_type=content_type)
