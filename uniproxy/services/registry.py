from typing import Any, Dict, List, Optional

import httpx

from ..browser.engine import ScrapeEngine
from ..config import Settings
from ..credentials import CredentialStore
from ..errors import ServiceNotFound
from ..forwarder import HttpForwarder
from ..logging_config import get_logger
from .base import ServiceHandler
from .elevenlabs import ElevenLabsService
from .generic_http import GenericHttpService
from .openai import OpenAIService
from .playwright import PlaywrightService

logger = get_logger("uniproxy.services")


class ServiceRegistry:

    def __init__(self):
        self._services: Dict[str, ServiceHandler] = {}

    def register(self, handler: ServiceHandler) -> ServiceHandler:
        if not handler.name:
            raise ValueError("Service handler has no name")
        if handler.name in self._services:
            raise ValueError(f"Service '{handler.name}' already registered")
        self._services[handler.name] = handler
        logger.info(f"Registered service: {handler.name}")
        return handler

    def get(self, name: str) -> ServiceHandler:
        handler = self._services.get(name)
        if handler is None:
            raise ServiceNotFound(f"Service '{name}' not found")
        return handler

    def __contains__(self, name: str) -> bool:
        return name in self._services

    def names(self) -> List[str]:
        return list(self._services)

    def describe(self) -> List[Dict[str, Any]]:
        return [handler.describe() for handler in self._services.values()]


def build_registry(
    settings: Settings,
    credential_store: Optional[CredentialStore] = None,
    forwarder: Optional[HttpForwarder] = None,
    engine: Optional[ScrapeEngine] = None,
    provider_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceRegistry:
    """Register every built-in service once, at startup."""
    registry = ServiceRegistry()
    registry.register(GenericHttpService(forwarder or HttpForwarder()))
    registry.register(PlaywrightService(engine or ScrapeEngine(credential_store)))
    registry.register(OpenAIService(settings.openai_api_key, transport=provider_transport))
    registry.register(ElevenLabsService(settings.elevenlabs_api_key, transport=provider_transport))
    return registry
