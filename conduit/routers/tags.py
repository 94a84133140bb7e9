from fastapi import APIRouter, Depends

from conduit.dependencies import get_services
from conduit.schemas import TagsResponse
from conduit.wiring import Services

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("", response_model=TagsResponse)
async def list_tags(services: Services = Depends(get_services)):
    return TagsResponse(tags=await services.articles.tags())
