"""
OpenAI pass-through: chat completions, image generation and model listing.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from ..errors import ConfigurationError, InvalidRequest, UpstreamUnreachable
from ..logging_config import get_logger
from ..proxy_agent import ProxyAgentDescriptor
from .base import DispatchRequest, ServiceHandler, ServiceResult, provider_client, relay_error

logger = get_logger("uniproxy.services.openai")

DEFAULT_CHAT_MODEL = "gpt-4o-mini"
MAX_PROMPT_LENGTH = 4000

IMAGE_MODELS = ("gpt-image-1", "dall-e-3", "dall-e-2")
SINGLE_IMAGE_MODELS = ("gpt-image-1", "dall-e-3")
IMAGE_SIZES = {
    "gpt-image-1": ("1024x1024", "1024x1792", "1792x1024"),
    "dall-e-3": ("1024x1024", "1024x1792", "1792x1024"),
    "dall-e-2": ("256x256", "512x512", "1024x1024"),
}

LISTED_MODEL_MARKERS = ("gpt", "dall-e", "whisper", "tts", "embedding")

MODEL_DESCRIPTIONS = [
    ("gpt-4o", "Advanced GPT-4 model with vision and multimodal capabilities"),
    ("gpt-4-turbo", "High-performance GPT-4 with improved speed and context"),
    ("gpt-4", "Large multimodal model with broad general knowledge"),
    ("gpt-3.5-turbo", "Fast and efficient chat model"),
    ("dall-e-3", "Advanced image generation with improved quality and safety"),
    ("dall-e-2", "Image generation model supporting multiple outputs"),
    ("whisper", "Speech recognition and transcription model"),
    ("tts", "Text-to-speech model"),
    ("embedding", "Text embedding model for semantic search"),
]


def describe_model(model_id: str) -> str:
    for marker, description in MODEL_DESCRIPTIONS:
        if marker in model_id:
            return description
    return "OpenAI model"


def validate_image_request(body: Dict[str, Any]) -> Dict[str, Any]:
    """Validate an image request and build the upstream payload."""
    prompt = body.get("prompt")
    if not prompt or not isinstance(prompt, str):
        raise InvalidRequest("Prompt is required and must be a string")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise InvalidRequest(f"Prompt too long (max {MAX_PROMPT_LENGTH} characters)")

    model = body.get("model", "gpt-image-1")
    n = body.get("n", 1)
    size = body.get("size", "1024x1024")
    quality = body.get("quality", "standard")
    style = body.get("style", "vivid")

    if model not in IMAGE_MODELS:
        raise InvalidRequest("Invalid model. Use gpt-image-1, dall-e-3, or dall-e-2")

    if model in SINGLE_IMAGE_MODELS and n != 1:
        raise InvalidRequest(f"{model} only supports generating 1 image at a time")
    if model == "dall-e-2" and (not isinstance(n, int) or n < 1 or n > 10):
        raise InvalidRequest("DALL-E 2 supports 1-10 images")

    if size not in IMAGE_SIZES[model]:
        raise InvalidRequest(f"Invalid size for {model}. Allowed: {', '.join(IMAGE_SIZES[model])}")

    payload: Dict[str, Any] = {
        "prompt": prompt,
        "model": model,
        "n": n,
        "size": size,
        "response_format": "url",
    }

    if model in SINGLE_IMAGE_MODELS:
        if quality not in ("standard", "hd"):
            raise InvalidRequest(f"Quality must be standard or hd for {model}")
        if style not in ("vivid", "natural"):
            raise InvalidRequest(f"Style must be vivid or natural for {model}")
        payload["quality"] = quality
        payload["style"] = style

    return payload


class OpenAIService(ServiceHandler):

    name = "openai"
    description = "OpenAI API proxy with dynamic model listing, chat completions, and image generation"
    endpoints = ["chat", "images", "models"]

    OPENAI_URL = "https://api.openai.com/v1"

    def __init__(self, api_key: str = "", transport: Optional[httpx.AsyncBaseTransport] = None):
        self._default_key = api_key
        self._transport = transport

    def _api_key(self, body: Dict[str, Any]) -> str:
        api_key = body.get("openai_api_key") or self._default_key
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key not configured. Set OPENAI_API_KEY or provide it in the request body."
            )
        return api_key

    async def _call(
        self,
        method: str,
        path: str,
        api_key: str,
        proxy: Optional[ProxyAgentDescriptor],
        payload: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        headers = {"Authorization": f"Bearer {api_key}"}
        if proxy is not None:
            logger.info(f"OpenAI request through {proxy.tier} proxy")

        async with provider_client(self.OPENAI_URL, headers, proxy, self._transport) as client:
            try:
                response = await client.request(method, path, json=payload)
            except httpx.HTTPError as e:
                raise UpstreamUnreachable(f"OpenAI request failed: {e}") from e

        if response.is_error:
            return relay_error(response)
        return response.json()

    async def dispatch(self, endpoint: str, request: DispatchRequest) -> ServiceResult:
        body = request.json()
        if not isinstance(body, dict):
            raise InvalidRequest("Invalid request body")

        if endpoint == "chat":
            return await self.chat_completion(body, request.proxy)
        if endpoint == "images":
            return await self.generate_images(body, request.proxy)
        return await self.list_models(body, request.proxy)

    async def chat_completion(self, body: Dict[str, Any], proxy: Optional[ProxyAgentDescriptor]) -> ServiceResult:
        if not isinstance(body.get("messages"), list):
            raise InvalidRequest("Messages array is required")

        api_key = self._api_key(body)
        payload = {key: value for key, value in body.items() if key != "openai_api_key"}
        payload["model"] = payload.get("model") or DEFAULT_CHAT_MODEL
        return await self._call("POST", "/chat/completions", api_key, proxy, payload)

    async def generate_images(self, body: Dict[str, Any], proxy: Optional[ProxyAgentDescriptor]) -> ServiceResult:
        payload = validate_image_request(body)
        api_key = self._api_key(body)
        logger.info(f"{payload['model']} image generation: {payload['prompt'][:50]}...")
        return await self._call("POST", "/images/generations", api_key, proxy, payload)

    async def list_models(self, body: Dict[str, Any], proxy: Optional[ProxyAgentDescriptor]) -> ServiceResult:
        api_key = self._api_key(body)
        result = await self._call("GET", "/models", api_key, proxy)
        if not isinstance(result, dict):
            return result

        models = [
            {
                "id": model["id"],
                "name": model["id"],
                "description": describe_model(model["id"]),
                "owned_by": model.get("owned_by"),
                "created": model.get("created", 0),
            }
            for model in result.get("data", [])
            if any(marker in model.get("id", "") for marker in LISTED_MODEL_MARKERS)
        ]
        models.sort(key=lambda model: model["created"] or 0, reverse=True)

        return {
            "models": models,
            "count": len(models),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": "OpenAI API",
        }
