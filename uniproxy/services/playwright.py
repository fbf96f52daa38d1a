from fastapi.responses import Response
from pydantic import ValidationError

from ..browser.engine import ScrapeEngine
from ..browser.models import ImageOutcome, PdfOutcome, ScrapeRequest
from ..errors import InvalidRequest
from .base import DispatchRequest, ServiceHandler, ServiceResult


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "invalid value")


class PlaywrightService(ServiceHandler):
    """Browser-rendered scraping through the automation engine."""

    name = "playwright"
    description = "Browser-based scraping with Playwright to bypass bot detection"
    endpoints = ["scrape"]

    def __init__(self, engine: ScrapeEngine):
        self.engine = engine

    async def dispatch(self, endpoint: str, request: DispatchRequest) -> ServiceResult:
        try:
            scrape_request = ScrapeRequest.model_validate(request.json())
        except ValidationError as e:
            raise InvalidRequest(_validation_message(e)) from None

        outcome = await self.engine.scrape(scrape_request, proxy=request.proxy)

        if isinstance(outcome, (ImageOutcome, PdfOutcome)):
            return Response(
                content=outcome.data,
                media_type=outcome.media_type,
                headers={"Cache-Control": "public, max-age=3600"},
            )
        return outcome.to_dict()
