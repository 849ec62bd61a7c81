from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from constants import HEALTH_BODY

health_router = APIRouter(tags=["health"])


@health_router.get("/", response_class=PlainTextResponse)
async def health():
    return HEALTH_BODY
