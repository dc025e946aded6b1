from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from ..exceptions import LinkNotFoundError
from ..observability import REDIRECT_TOTAL, REDIRECT_404_TOTAL
from ..schemas import LinkMetadata, ShortenRequest, ShortenResponse
from ..services.shortener import ShortenerService

router = APIRouter()


def get_shortener(request: Request) -> ShortenerService:
    return request.app.state.shortener


@router.post("/shorten", response_model=ShortenResponse)
async def shorten_url(
    request: Request,
    shortener: ShortenerService = Depends(get_shortener)
):
    # The body is decoded by hand: malformed input must reach URL validation
    # as empty fields instead of failing with 422.
    link_in = ShortenRequest.from_body(await request.body())

    result = await shortener.shorten(link_in.original_url, link_in.custom_slug)

    return ShortenResponse.build(
        short_url=result.short_url,
        qr_code=result.qr_code,
        click_count=result.click_count,
        creation_date=result.creation_date,
    )


@router.get("/v1/links/{alias}", response_model=LinkMetadata)
async def get_link_metadata(
    alias: str,
    shortener: ShortenerService = Depends(get_shortener)
):
    link = await shortener.get_link(alias)
    return LinkMetadata(
        short_url=shortener.build_short_url(link.short_url),
        original_url=link.original_url,
        click_count=link.click_count,
        creation_date=link.creation_date,
        expiration_date=link.expiration_date,
    )


@router.get("/{alias}")
async def redirect_to_url(
    alias: str,
    request: Request,
    shortener: ShortenerService = Depends(get_shortener)
):
    try:
        target_url = await shortener.resolve(alias)
    except LinkNotFoundError:
        REDIRECT_404_TOTAL.inc()
        raise

    REDIRECT_TOTAL.inc()
    return RedirectResponse(url=target_url, status_code=request.app.state.redirect_status_code)
