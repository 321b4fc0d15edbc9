"""Hugging Face Space image-to-image provider (fallback backend).

Talks to a Gradio Space over its HTTP API:

1. Resolve the Space's execution host via the Hub API
2. Upload the input image to the host
3. Submit the ``/infer`` call and receive an event id
4. Read the event stream until a ``complete`` or ``error`` event arrives
5. Download the produced file

The whole flow is bounded by a single timeout.
"""

import asyncio
import json
from typing import Any, Optional

import httpx
import structlog

from artmorph.services.exceptions import (
    ProviderError,
    ProviderFailureError,
    ProviderPermissionDeniedError,
)
from artmorph.services.image_generation.base import (
    GenerationParams,
    GenerationResult,
    classify_error,
    detect_content_type,
)

logger = structlog.get_logger(__name__)

HUB_URL = "https://huggingface.co"
DEFAULT_PROMPT = "Transform this image into an artistic style"
DEFAULT_GUIDANCE_SCALE = 2.5
DEFAULT_STEPS = 28


class HuggingFaceSpaceProvider:
    """Fallback provider backed by a (ZeroGPU) Gradio Space such as FLUX.1 Kontext."""

    name = "huggingface"

    def __init__(
        self,
        api_token: str,
        space_id: str,
        timeout_seconds: float = 180.0,
        download_timeout_seconds: float = 30.0,
        api_name: str = "infer",
        hub_url: str = HUB_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Space provider.

        Args:
            api_token: Hugging Face token (HF_API_TOKEN); empty disables the provider
            space_id: Space identifier, e.g. "black-forest-labs/FLUX.1-Kontext-Dev"
            timeout_seconds: Budget for the complete host/upload/submit/stream/download flow
            download_timeout_seconds: Timeout for fetching the output file
            api_name: Gradio endpoint name
            hub_url: Hub base URL used to resolve the Space host
            transport: httpx transport (tests inject a MockTransport)
        """
        self.api_token = api_token
        self.space_id = space_id
        self.timeout_seconds = timeout_seconds
        self.download_timeout_seconds = download_timeout_seconds
        self.api_name = api_name
        self.hub_url = hub_url.rstrip("/")
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    async def generate(self, params: GenerationParams) -> GenerationResult:
        """Generate an image through the Space.

        Raises:
            ProviderTimeoutError: Flow exceeded timeout_seconds
            ProviderBusyError: Space queue full or GPU quota exhausted
            ProviderPermissionDeniedError: Token missing, or gated model license not accepted
            ProviderFailureError: Any other failure
        """
        if not self.is_configured:
            raise ProviderPermissionDeniedError("HF_API_TOKEN is not configured", provider=self.name)

        if params.control_image is not None or params.negative_prompt:
            logger.debug("space.conditioning_ignored", space_id=self.space_id)

        try:
            return await asyncio.wait_for(self._run(params), timeout=self.timeout_seconds)
        except ProviderError:
            raise
        except Exception as e:
            raise classify_error(e, self.name) from e

    def build_payload(self, input_file: dict[str, Any], params: GenerationParams) -> dict[str, Any]:
        """Positional inputs of the Kontext ``/infer`` endpoint.

        Order: input_image, prompt, seed, randomize_seed, guidance_scale, steps.
        Seed 0 (or no seed) asks the Space to randomize.
        """
        options = params.options_for(self.name)
        seed = options.get("seed", params.seed) or 0
        guidance = options.get("guidance_scale", params.guidance_scale)
        steps = options.get("steps", params.num_inference_steps)
        return {
            "data": [
                input_file,
                params.prompt or DEFAULT_PROMPT,
                seed,
                seed == 0,
                guidance if guidance is not None else DEFAULT_GUIDANCE_SCALE,
                steps if steps is not None else DEFAULT_STEPS,
            ]
        }

    async def _run(self, params: GenerationParams) -> GenerationResult:
        headers = {"Authorization": f"Bearer {self.api_token}"}
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, headers=headers, transport=self._transport
        ) as client:
            host = await self._resolve_host(client)
            input_file = await self._upload_input(client, host, params.input_image)
            event_id = await self._submit(client, host, self.build_payload(input_file, params))
            output = await self._read_events(client, host, event_id)
            image_url = self._extract_output_url(host, output)
            return await self._download(client, image_url)

    async def _resolve_host(self, client: httpx.AsyncClient) -> str:
        response = await client.get(f"{self.hub_url}/api/spaces/{self.space_id}/host")
        self._raise_for_status(response, "Space host lookup")
        host = response.json().get("host")
        if not host:
            raise ProviderFailureError(
                f"Space {self.space_id} returned no execution host", provider=self.name
            )
        logger.debug("space.host_resolved", space_id=self.space_id, host=host)
        return host.rstrip("/")

    async def _upload_input(self, client: httpx.AsyncClient, host: str, image: bytes) -> dict[str, Any]:
        mime_type = detect_content_type(image)
        response = await client.post(
            f"{host}/gradio_api/upload",
            files={"files": ("input-image", image, mime_type)},
        )
        self._raise_for_status(response, "Input upload")
        paths = response.json()
        if not isinstance(paths, list) or not paths:
            raise ProviderFailureError("Space upload returned no file path", provider=self.name)
        return {
            "path": paths[0],
            "orig_name": "input-image",
            "mime_type": mime_type,
            "meta": {"_type": "gradio.FileData"},
        }

    async def _submit(self, client: httpx.AsyncClient, host: str, payload: dict[str, Any]) -> str:
        response = await client.post(f"{host}/gradio_api/call/{self.api_name}", json=payload)
        self._raise_for_status(response, "Job submission")
        event_id = response.json().get("event_id")
        if not event_id:
            raise ProviderFailureError("Space did not return an event id", provider=self.name)
        logger.info("space.job_submitted", space_id=self.space_id, event_id=event_id)
        return event_id

    async def _read_events(self, client: httpx.AsyncClient, host: str, event_id: str) -> Any:
        """Consume the server-sent event stream until a terminal event."""
        url = f"{host}/gradio_api/call/{self.api_name}/{event_id}"
        async with client.stream("GET", url) as response:
            if response.status_code >= 400:
                await response.aread()
            self._raise_for_status(response, "Event stream")

            event: Optional[str] = None
            async for line in response.aiter_lines():
                if line.startswith("event:"):
                    event = line[len("event:") :].strip()
                    continue
                if not line.startswith("data:"):
                    continue

                data = line[len("data:") :].strip()
                if event == "complete":
                    return json.loads(data)
                if event == "error":
                    detail = data if data and data != "null" else "Space reported an error"
                    raise classify_error(RuntimeError(detail), self.name)
                # generating / heartbeat events carry no result

        raise ProviderFailureError("Event stream ended without a result", provider=self.name)

    def _extract_output_url(self, host: str, output: Any) -> str:
        first = output[0] if isinstance(output, list) and output else None
        if isinstance(first, dict):
            if first.get("url"):
                return first["url"]
            if first.get("path"):
                return f"{host}/gradio_api/file={first['path']}"
        raise ProviderFailureError("No image returned from the Space", provider=self.name)

    async def _download(self, client: httpx.AsyncClient, url: str) -> GenerationResult:
        response = await client.get(url, timeout=self.download_timeout_seconds)
        self._raise_for_status(response, "Output download")
        image = response.content
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = detect_content_type(image)
        logger.info("space.output_downloaded", size_bytes=len(image), content_type=content_type)
        return GenerationResult(image=image, content_type=content_type)

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        if response.status_code < 400:
            return
        detail = response.text[:300]
        raise classify_error(
            RuntimeError(f"{action} failed with status {response.status_code}: {detail}"),
            self.name,
        )
