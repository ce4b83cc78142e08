"""Content-upload proxy endpoint.

Forwards clinical content to the pinning service and hands back the
reference a hospital then passes to ``POST /api/records``.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from medclaim.api.dependencies import ContentStoreDep
from medclaim.api.models.registry import UploadRequest, UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["upload"])


@router.post("/upload", response_model=UploadResponse)
async def upload_content(body: UploadRequest, content_store: ContentStoreDep):
    result = await content_store.upload(body.content, body.metadata)
    if result.is_failure():
        status_code = (result.error_details or {}).get("status_code", 500)
        return JSONResponse(status_code=status_code, content={"error": result.error})
    return UploadResponse(content_ref=result.value)
