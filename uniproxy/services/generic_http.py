from fastapi.responses import Response

from ..errors import InvalidDestination
from ..forwarder import HttpForwarder
from .base import DispatchRequest, ServiceHandler


class GenericHttpService(ServiceHandler):
    """Relays a request to any public REST endpoint."""

    name = "generic-http"
    description = "Generic HTTP proxy for any REST API"
    endpoints = ["proxy"]

    def __init__(self, forwarder: HttpForwarder):
        self.forwarder = forwarder

    async def dispatch(self, endpoint: str, request: DispatchRequest) -> Response:
        target_url = request.headers.get("x-target-url") or request.query.get("url")
        if not target_url:
            raise InvalidDestination("Target URL required (use x-target-url header or url query param)")

        forwarded = await self.forwarder.forward(
            request.method,
            target_url,
            headers=request.headers,
            body=request.body,
            proxy=request.proxy,
        )
        return Response(
            content=forwarded.body,
            status_code=forwarded.status_code,
            headers=forwarded.headers,
        )
