"""External generation service: protocol and Runware-style HTTP client.

Handlers talk to :class:`GenerationService`; :class:`RunwareClient` is the
bundled implementation.  Each call posts a one-element task list to the
REST endpoint and returns the first matching entry of ``data``.

All calls are request/response.  None of them support cancellation.
"""

from __future__ import annotations

import base64
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Any, Protocol, Self

import httpx
from pydantic import BaseModel, Field

from rendergraph.domain.prompts import KONTEXT_PRO_MODEL, SIZE_RATIOS

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.runware.ai/v1"

KONTEXT_MODEL_ID = "runware:106@1"
KONTEXT_PRO_MODEL_ID = "bfl:3@1"


class GenerationServiceError(Exception):
    """A remote call failed (transport, HTTP status, or error payload)."""

    def __init__(self, message: str, *, task_type: str = "", status_code: int | None = None):
        super().__init__(message)
        self.task_type = task_type
        self.status_code = status_code


class GeneratedImage(BaseModel):
    """Image reference returned by a generation call."""

    model_config = {"frozen": True, "populate_by_name": True}

    image_url: str = Field(alias="imageURL")
    cost: float | None = None


class GenerationService(Protocol):
    """Remote API surface consumed by node handlers."""

    async def upload_image(self, path: Path) -> str: ...

    async def preprocess_image(self, image: str, preprocessor: str) -> GeneratedImage: ...

    async def generate_image(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def remove_background(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def upscale_image(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def inpaint_image(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def outpaint_image(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def generate_reimagine(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def generate_reference(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def generate_rescene(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def generate_reangle(self, params: dict[str, Any]) -> GeneratedImage: ...

    async def generate_remix(self, params: dict[str, Any]) -> GeneratedImage: ...


def _data_uri(path: Path) -> str:
    """Read *path* and encode it as a ``data:`` URI."""
    mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def _error_message(errors: Any) -> str:
    """First readable message from an ``errors`` payload of any shape."""
    first = errors[0] if isinstance(errors, list) else errors
    if isinstance(first, dict):
        return str(first.get("message") or first.get("code") or "unknown error")
    return str(first)


class RunwareClient:
    """Async HTTP client for a Runware-compatible task API.

    Parameters:
        api_key: Bearer token sent with every request (omitted when None).
        base_url: Task endpoint.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {api_key}"} if api_key else None,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(self, task: dict[str, Any]) -> dict[str, Any]:
        """Post one task and return its result entry.

        Raises:
            GenerationServiceError: On timeouts, network errors, non-2xx
                statuses, ``errors`` payloads, or a missing result entry.
        """
        task_type = task["taskType"]
        task_uuid = str(uuid.uuid4())
        payload = [{**task, "taskUUID": task_uuid}]
        logger.debug("Sending %s task %s", task_type, task_uuid)

        try:
            response = await self._client.post(self._base_url, json=payload)
        except httpx.TimeoutException as exc:
            raise GenerationServiceError(
                f"{task_type} timed out", task_type=task_type
            ) from exc
        except httpx.RequestError as exc:
            raise GenerationServiceError(
                f"{task_type} network error: {exc}", task_type=task_type
            ) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not isinstance(body, dict):
            body = {}
        errors = body.get("errors")
        if errors:
            raise GenerationServiceError(
                f"{task_type} failed: {_error_message(errors)}",
                task_type=task_type,
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise GenerationServiceError(
                f"{task_type} failed (HTTP {response.status_code})",
                task_type=task_type,
                status_code=response.status_code,
            )

        data = body.get("data")
        entries = [e for e in data if isinstance(e, dict)] if isinstance(data, list) else []
        for entry in entries:
            if entry.get("taskUUID") in (task_uuid, None):
                return entry
        if entries:
            return entries[0]
        raise GenerationServiceError(
            f"{task_type} returned no result",
            task_type=task_type,
            status_code=response.status_code,
        )

    async def _image_task(
        self, task: dict[str, Any], *, url_key: str = "imageURL"
    ) -> GeneratedImage:
        entry = await self._send(task)
        url = entry.get(url_key)
        if not url:
            raise GenerationServiceError(
                f"{task['taskType']} response carried no {url_key}", task_type=task["taskType"]
            )
        return GeneratedImage(imageURL=url, cost=entry.get("cost"))

    # ------------------------------------------------------------------
    # Upload / preprocessing
    # ------------------------------------------------------------------

    async def upload_image(self, path: Path) -> str:
        try:
            image = _data_uri(path)
        except OSError as exc:
            raise GenerationServiceError(
                f"Cannot read {path}: {exc}", task_type="imageUpload"
            ) from exc
        result = await self._image_task({"taskType": "imageUpload", "image": image})
        return result.image_url

    async def preprocess_image(self, image: str, preprocessor: str) -> GeneratedImage:
        task = {
            "taskType": "imageControlNetPreProcess",
            "inputImage": image,
            "preProcessorType": preprocessor,
            "outputType": ["URL"],
            "outputFormat": "PNG",
        }
        return await self._image_task(task, url_key="guideImageURL")

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_image(self, params: dict[str, Any]) -> GeneratedImage:
        task = {
            "taskType": "imageInference",
            "numberResults": 1,
            "outputFormat": "WEBP",
            "outputType": ["URL"],
            "includeCost": True,
            **params,
        }
        return await self._image_task(task)

    async def _kontext(self, params: dict[str, Any]) -> GeneratedImage:
        """Run a Flux Kontext task from handler-built parameters."""
        task: dict[str, Any] = {
            "taskType": "imageInference",
            "numberResults": 1,
            "outputFormat": "JPEG",
            "outputType": ["URL"],
            "includeCost": True,
            "outputQuality": 85,
            "positivePrompt": params["positivePrompt"],
            "referenceImages": list(params["referenceImages"]),
            "advancedFeatures": {"guidanceEndStepPercentage": 75},
        }
        if params.get("model") == KONTEXT_PRO_MODEL:
            width, height = SIZE_RATIOS.get(params.get("sizeRatio") or "1:1", SIZE_RATIOS["1:1"])
            task.update(model=KONTEXT_PRO_MODEL_ID, width=width, height=height)
        else:
            task.update(model=KONTEXT_MODEL_ID, steps=28, CFGScale=2.5, scheduler="Default")
        if params.get("strength") is not None:
            task["strength"] = params["strength"]
        loras = [lora for lora in params.get("lora", []) if lora.get("model", "").strip()]
        if loras:
            task["lora"] = loras
        return await self._image_task(task)

    async def generate_reimagine(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._kontext(params)

    async def generate_reference(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._kontext(params)

    async def generate_rescene(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._kontext(params)

    async def generate_reangle(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._kontext(params)

    async def generate_remix(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._kontext(params)

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def remove_background(self, params: dict[str, Any]) -> GeneratedImage:
        task = {
            "taskType": "imageBackgroundRemoval",
            "model": "runware:110@1",
            "outputFormat": "PNG",
            "outputType": ["URL"],
            **params,
        }
        return await self._image_task(task)

    async def upscale_image(self, params: dict[str, Any]) -> GeneratedImage:
        task = {
            "taskType": "imageUpscale",
            "outputFormat": "JPG",
            "outputType": ["URL"],
            **params,
        }
        return await self._image_task(task)

    async def inpaint_image(self, params: dict[str, Any]) -> GeneratedImage:
        task = {
            "taskType": "imageInference",
            "model": "runware:100@1",
            "outputFormat": "JPEG",
            "width": 1024,
            "height": 1024,
            "steps": 28,
            "CFGScale": 3.5,
            "includeCost": True,
            "outputType": ["URL"],
            **params,
        }
        return await self._image_task(task)

    async def outpaint_image(self, params: dict[str, Any]) -> GeneratedImage:
        direction = params.get("outpaintDirection", "all")
        amount = int(params.get("outpaintAmount", 50))
        sides = ("top", "bottom", "left", "right")
        if direction == "all":
            extend = dict.fromkeys(sides, amount)
        else:
            side = {"up": "top", "down": "bottom"}.get(direction, direction)
            extend = {s: amount if s == side else 0 for s in sides}
        task = {
            "taskType": "imageInference",
            "model": "runware:102@1",
            "outputFormat": "JPEG",
            "steps": 40,
            "CFGScale": 3.5,
            "strength": 0.9,
            "includeCost": True,
            "outputType": ["URL"],
            "positivePrompt": params.get("positivePrompt") or "__BLANK__",
            "seedImage": params["inputImage"],
            "outpaint": extend,
        }
        return await self._image_task(task)
