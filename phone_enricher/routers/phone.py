from fastapi import APIRouter

from phone_enricher.dependencies import ExtractionRunnerDep, PageSourceDep
from phone_enricher.schemas.responses import PhoneLookupRequest, PhoneLookupResponse

router = APIRouter(prefix="/api")


@router.post("/phone", response_model=PhoneLookupResponse)
async def lookup_phone(
    request: PhoneLookupRequest,
    runner: ExtractionRunnerDep,
    pages: PageSourceDep,
) -> PhoneLookupResponse:
    outcome = await runner.lookup(request.url, pages)
    return PhoneLookupResponse(
        url=request.url,
        phone=outcome.phone,
        status=outcome.status,
        reason=outcome.reason,
    )
