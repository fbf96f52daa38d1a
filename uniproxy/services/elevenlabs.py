from typing import Optional

import httpx
from fastapi.responses import Response

from ..errors import ConfigurationError, InvalidRequest, UpstreamUnreachable
from ..logging_config import get_logger
from .base import DispatchRequest, ServiceHandler, ServiceResult, provider_client, relay_error

logger = get_logger("uniproxy.services.elevenlabs")

DEFAULT_MODEL_ID = "eleven_multilingual_v2"


class ElevenLabsService(ServiceHandler):

    name = "elevenlabs"
    description = "ElevenLabs Text-to-Speech service"
    endpoints = ["tts"]

    ELEVENLABS_URL = "https://api.elevenlabs.io/v1"

    def __init__(self, api_key: str = "", transport: Optional[httpx.AsyncBaseTransport] = None):
        self._default_key = api_key
        self._transport = transport

    async def dispatch(self, endpoint: str, request: DispatchRequest) -> ServiceResult:
        body = request.json()
        if not isinstance(body, dict):
            raise InvalidRequest("Invalid request body")

        text = body.get("text")
        voice_id = body.get("voice_id")
        if not text or not voice_id:
            raise InvalidRequest("Missing required parameters: text and voice_id")

        api_key = body.get("elevenlabs_api_key") or self._default_key
        if not api_key:
            raise ConfigurationError(
                "Missing ElevenLabs API key. Provide it in the request body or set ELEVENLABS_API_KEY."
            )

        payload = {"text": text, "model_id": body.get("model_id") or DEFAULT_MODEL_ID}
        headers = {"xi-api-key": api_key, "Accept": "audio/mpeg"}

        async with provider_client(self.ELEVENLABS_URL, headers, request.proxy, self._transport) as client:
            try:
                response = await client.post(f"/text-to-speech/{voice_id}", json=payload)
            except httpx.HTTPError as e:
                logger.error(f"ElevenLabs API error: {e}")
                raise UpstreamUnreachable(f"Error generating audio from ElevenLabs: {e}") from e

        if response.is_error:
            return relay_error(response)
        return Response(content=response.content, media_type="audio/mpeg")
