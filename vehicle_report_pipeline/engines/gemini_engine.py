"""
Gemini analysis engine.

Calls the Gemini REST API over httpx: images are fetched from asset storage,
pushed to the Files API with the resumable upload protocol, then referenced
from a generateContent request. Uploads fan out a few at a time with a pause
between batches to stay inside the API's rate limits.
"""

import asyncio
import mimetypes
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from asyncio_throttle import Throttler

from .base import AnalysisEngine, parse_json_payload
from ..core.exceptions import AnalysisEngineError, MalformedResponseError
from ..models.analysis import AnalysisRequest, AnalysisResult
from ..models.evidence import AssessableItem
from ..utils.config import PipelineConfig
from ..utils.logger import get_logger


@dataclass
class FileReference:
    """An image uploaded to the Gemini Files API."""

    uri: str
    mime_type: str
    category: str
    display_name: str


def calculate_cost(usage: Dict[str, Any], prompt_rate: float, completion_rate: float) -> Dict[str, Any]:
    """
    Compute token usage and cost from Gemini ``usageMetadata``.

    Returns:
        Dictionary with prompt_tokens, completion_tokens, total_tokens, cost
    """
    prompt_tokens = int(usage.get("promptTokenCount") or 0)
    completion_tokens = int(usage.get("candidatesTokenCount") or 0)
    total_tokens = int(usage.get("totalTokenCount") or (prompt_tokens + completion_tokens))
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": total_tokens,
        "cost": prompt_tokens * prompt_rate + completion_tokens * completion_rate
    }


def extract_text(data: Dict[str, Any]) -> str:
    """
    Pull the text of the first candidate out of a generateContent response.

    Raises:
        MalformedResponseError: If the response carries no text part
    """
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback") or {}
        reason = feedback.get("blockReason")
        raise MalformedResponseError(f"no candidates returned{f' (blocked: {reason})' if reason else ''}")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [part["text"] for part in parts if isinstance(part, dict) and part.get("text")]
    if not texts:
        raise MalformedResponseError("no text content in first candidate")
    return "".join(texts)


def extract_web_searches(data: Dict[str, Any]) -> Dict[str, Any]:
    """Collect grounding queries and sources from the first candidate."""
    candidates = data.get("candidates") or []
    grounding = (candidates[0].get("groundingMetadata") or {}) if candidates else {}
    queries = list(grounding.get("webSearchQueries") or [])
    results = []
    for chunk in grounding.get("groundingChunks") or []:
        web = chunk.get("web") or {}
        if web:
            results.append({"uri": web.get("uri"), "title": web.get("title")})
    if queries and not results:
        results = [{"query": query} for query in queries]
    return {"web_search_count": len(queries), "web_search_results": results}


class GeminiAnalysisEngine(AnalysisEngine):
    """
    Analysis engine backed by the Gemini generateContent API.

    Suitable for:
    - Vision analysis of chunk images against a JSON schema
    - Web-grounded research stages (google_search tool)
    """

    def __init__(self, settings: PipelineConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the Gemini engine.

        Args:
            settings: Pipeline configuration (API key, model, rates, upload limits)
            transport: Optional httpx transport, used to stub the API in tests
        """
        super().__init__(settings.to_dict())
        self.settings = settings
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None
        self.throttler = Throttler(
            rate_limit=settings.max_concurrent_uploads,
            period=settings.batch_delay_seconds
        )
        # Throttler paces upload starts; the semaphore caps uploads in flight
        self.upload_slots = asyncio.Semaphore(settings.max_concurrent_uploads)
        self.logger = get_logger(__name__)

    @property
    def auth_headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.settings.gemini_api_key}

    @property
    def generate_url(self) -> str:
        base = self.settings.gemini_base_url.rstrip("/")
        return f"{base}/v1beta/models/{self.settings.gemini_model}:generateContent"

    async def initialize(self) -> bool:
        """Open the HTTP client."""
        if self._is_initialized:
            return True
        if not self.settings.gemini_api_key:
            self.logger.warning("GEMINI_API_KEY is not set; analysis calls will be rejected")
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.request_timeout_seconds),
            transport=self.transport
        )
        self._is_initialized = True
        self.logger.info("Gemini engine initialized", extra={"model": self.settings.gemini_model})
        return True

    async def shutdown(self) -> bool:
        """Close the HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None
        self._is_initialized = False
        return True

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Upload the request's images and run one generateContent call.

        Raises:
            AnalysisEngineError: On transport failures, non-2xx responses, or
                when none of the request's images could be uploaded
            MalformedResponseError: If the response body cannot be parsed
        """
        if not self._is_initialized or self.client is None:
            raise AnalysisEngineError(self.engine_name, "engine not initialized")

        files: List[FileReference] = []
        if request.images:
            files = await self.upload_images(request.images)
            if not files:
                raise AnalysisEngineError(self.engine_name, "No images were successfully uploaded")

        body = self.build_request_body(request, files)
        data = await self._post_json(self.generate_url, body)

        payload = parse_json_payload(extract_text(data))
        usage = calculate_cost(
            data.get("usageMetadata") or {},
            self.settings.prompt_token_rate,
            self.settings.completion_token_rate
        )
        searches = extract_web_searches(data)

        self.logger.info("Gemini analysis completed", extra={
            "inspection_id": request.inspection_id,
            "job_type": request.job_type,
            "images": len(files),
            "total_tokens": usage["total_tokens"],
            "web_search_count": searches["web_search_count"]
        })

        return AnalysisResult(
            payload=payload,
            model=data.get("modelVersion") or self.settings.gemini_model,
            prompt_tokens=usage["prompt_tokens"],
            completion_tokens=usage["completion_tokens"],
            total_tokens=usage["total_tokens"],
            cost=usage["cost"],
            web_search_count=searches["web_search_count"],
            web_search_results=searches["web_search_results"],
            uploaded_images=len(files)
        )

    def build_request_body(self, request: AnalysisRequest, files: List[FileReference]) -> Dict[str, Any]:
        """Assemble the generateContent body: prompt, data blocks, then category-labelled images."""
        parts: List[Dict[str, Any]] = [{"text": request.prompt}]
        parts.extend({"text": block} for block in request.context_blocks)
        for file in files:
            parts.append({"text": f"Category: {file.category}"})
            parts.append({"fileData": {"mimeType": file.mime_type, "fileUri": file.uri}})

        generation_config: Dict[str, Any] = {"temperature": self.settings.temperature}
        body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}

        if request.use_web_search:
            body["tools"] = [{"google_search": {}}]
        elif request.response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseJsonSchema"] = request.response_schema

        body["generationConfig"] = generation_config
        return body

    async def upload_images(self, images: List[AssessableItem]) -> List[FileReference]:
        """
        Upload images concurrently, keeping those that succeed.

        Order of the returned references follows ``images``.
        """
        results = await asyncio.gather(*(self._upload_throttled(item) for item in images))
        uploaded = [ref for ref in results if ref is not None]
        if len(uploaded) < len(images):
            self.logger.warning("Some image uploads failed", extra={
                "requested": len(images),
                "uploaded": len(uploaded)
            })
        return uploaded

    async def _upload_throttled(self, item: AssessableItem) -> Optional[FileReference]:
        async with self.upload_slots, self.throttler:
            try:
                return await self.upload_image(item)
            except (httpx.HTTPError, AnalysisEngineError, MalformedResponseError) as e:
                self.logger.warning("Image upload failed", extra={
                    "item_id": item.item_id,
                    "path": item.path,
                    "error": str(e)
                })
                return None

    def resolve_asset_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        base = self.settings.storage_public_url.rstrip("/")
        if not base:
            raise AnalysisEngineError(self.engine_name, f"cannot resolve relative asset path '{path}'")
        return f"{base}/{path.lstrip('/')}"

    async def upload_image(self, item: AssessableItem) -> FileReference:
        """Fetch one asset and push it through the resumable upload protocol."""
        asset = await self.client.get(self.resolve_asset_url(item.path))
        if asset.status_code >= 400:
            raise AnalysisEngineError(self.engine_name, f"asset fetch failed for {item.path}", asset.status_code)

        content = asset.content
        mime_type = (
            asset.headers.get("content-type", "").split(";")[0].strip()
            or mimetypes.guess_type(item.path)[0]
            or "image/jpeg"
        )
        display_name = f"{item.category}_{item.item_id}"

        start = await self.client.post(
            self.settings.upload_url,
            headers={
                **self.auth_headers,
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(len(content)),
                "X-Goog-Upload-Header-Content-Type": mime_type,
            },
            json={"file": {"display_name": display_name}}
        )
        if start.status_code >= 400:
            raise AnalysisEngineError(self.engine_name, f"upload init failed: {start.text}", start.status_code)

        upload_url = start.headers.get("x-goog-upload-url")
        if not upload_url:
            raise AnalysisEngineError(self.engine_name, "no upload URL received")

        finish = await self.client.post(
            upload_url,
            headers={
                **self.auth_headers,
                "X-Goog-Upload-Offset": "0",
                "X-Goog-Upload-Command": "upload, finalize",
            },
            content=content
        )
        if finish.status_code >= 400:
            raise AnalysisEngineError(self.engine_name, f"file upload failed: {finish.text}", finish.status_code)

        try:
            file_info = finish.json()["file"]
            return FileReference(
                uri=file_info["uri"],
                mime_type=file_info.get("mimeType", mime_type),
                category=item.category,
                display_name=display_name
            )
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponseError(f"unexpected upload response: {e}", raw_text=finish.text)

    async def _post_json(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.client.post(url, json=body, headers=self.auth_headers)
        except httpx.TimeoutException as e:
            raise AnalysisEngineError(self.engine_name, f"request timed out: {e}")
        except httpx.HTTPError as e:
            raise AnalysisEngineError(self.engine_name, f"request failed: {e}")

        if response.status_code >= 400:
            message = response.text
            try:
                error = response.json().get("error")
            except (ValueError, AttributeError):
                error = None
            if isinstance(error, dict) and error.get("message"):
                message = error["message"]
            raise AnalysisEngineError(
                self.engine_name,
                f"Gemini API error: {response.status_code} - {message}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"response body is not JSON: {e}", raw_text=response.text)
        if not isinstance(data, dict):
            raise MalformedResponseError("response body is not a JSON object", raw_text=response.text)
        return data
