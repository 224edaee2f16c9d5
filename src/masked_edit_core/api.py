from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from .broker import GenerativeEditBroker
from .config import Settings, build_broker, build_repository, build_storage, load_settings
from .errors import InvalidRequestError, PipelineError, UploadFailureError, user_message
from .image_utils import fetch_image_bytes, parse_base64_image
from .processes.design_unify import run_design_unify
from .processes.masked_edit import run_masked_edit
from .processes.restyle import RestyleOptions, run_page_restyle
from .processes.section_batch import SectionBatchGenerator
from .progress import ProgressStream, iter_sse
from .schemas import DesignUnifyRequest, InpaintRequest, SectionBatchRequest
from .types import ImagePayload
from .utils.records import SectionRepository
from .utils.storage import ObjectStorage

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


@dataclass
class Services:
    settings: Settings
    broker: Optional[GenerativeEditBroker]
    storage: ObjectStorage
    repository: SectionRepository

    def require_broker(self) -> GenerativeEditBroker:
        if self.broker is None:
            raise HTTPException(status_code=503, detail="GOOGLE_API_KEY is not configured")
        return self.broker


def get_services(request: Request) -> Services:
    return request.app.state.services


def resolve_image(b64: Optional[str], url: Optional[str], what: str = "image") -> Optional[ImagePayload]:
    if b64:
        data, mime_type = parse_base64_image(b64)
        return ImagePayload(data=data, mime_type=mime_type)
    if url:
        try:
            data, mime_type = fetch_image_bytes(url)
        except requests.RequestException as e:
            raise InvalidRequestError(f"Could not fetch {what}: {e}") from e
        return ImagePayload(data=data, mime_type=mime_type)
    return None


def to_http_error(e: PipelineError) -> HTTPException:
    if isinstance(e, InvalidRequestError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, UploadFailureError):
        return HTTPException(status_code=500, detail=user_message(e.kind))
    return HTTPException(status_code=502, detail=user_message(e.kind, rate_limited=e.rate_limited))


def stream_error_message(e: Exception) -> str:
    if isinstance(e, InvalidRequestError):
        return str(e)
    if isinstance(e, PipelineError):
        return user_message(e.kind, rate_limited=e.rate_limited)
    return "An error occurred during restyle"


def get_router() -> APIRouter:
    router = APIRouter()

    @router.post("/ai/inpaint")
    def inpaint(req: InpaintRequest, services: Services = Depends(get_services)):
        broker = services.require_broker()
        try:
            source = resolve_image(req.image_base64, req.image_url)
            if source is None:
                raise InvalidRequestError("An image is required")
            reference = resolve_image(req.reference_image_base64, req.reference_image_url, "reference image")
            result = run_masked_edit(
                source,
                req.regions(),
                req.prompt,
                broker=broker,
                design_style=req.design_definition,
                reference_image=reference,
                storage=services.storage,
                repository=services.repository,
                bucket=services.settings.storage_bucket,
                original_ref=req.image_url,
            )
        except PipelineError as e:
            raise to_http_error(e) from e

        if not result.ok:
            return {
                "success": False,
                "error": result.message,
                "textResponse": result.text_response,
            }
        return {
            "success": True,
            "imageUrl": result.image_url,
            "mediaId": result.media_id,
            "textResponse": result.text_response,
            "model": result.model_used,
        }

    @router.post("/ai/design-unify")
    def design_unify(req: DesignUnifyRequest, services: Services = Depends(get_services)):
        broker = services.require_broker()
        try:
            reference = resolve_image(req.reference_image_base64, req.reference_image_url, "reference image")
            if reference is None:
                raise InvalidRequestError("A reference image is required")
            result = run_design_unify(
                req.section_id,
                reference,
                req.masks,
                broker=broker,
                storage=services.storage,
                repository=services.repository,
                extra_prompt=req.prompt,
                bucket=services.settings.storage_bucket,
            )
        except PipelineError as e:
            raise to_http_error(e) from e

        if not result.ok:
            return {"success": False, "error": result.message}
        return {"success": True, "newImageUrl": result.image_url, "newImageId": result.media_id}

    @router.post("/pages/{page_id}/restyle")
    def restyle_page(
        page_id: int,
        payload: Dict[str, Any] = Body(...),
        services: Services = Depends(get_services),
    ):
        try:
            options = RestyleOptions.model_validate(payload)
        except ValidationError as e:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Validation failed",
                    "details": e.errors(include_url=False, include_context=False, include_input=False),
                },
            ) from e
        broker = services.require_broker()

        def job(stream: ProgressStream) -> None:
            run_page_restyle(
                page_id,
                options,
                stream,
                broker=broker,
                storage=services.storage,
                repository=services.repository,
                bucket=services.settings.storage_bucket,
            )

        return StreamingResponse(
            iter_sse(job, stream_error_message),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @router.post("/lp-builder/sections")
    def generate_sections(req: SectionBatchRequest, services: Services = Depends(get_services)):
        generator = SectionBatchGenerator(
            services.require_broker(),
            storage=services.storage,
            repository=services.repository,
            bucket=services.settings.storage_bucket,
            stagger_ms=services.settings.section_stagger_ms,
            max_concurrent=services.settings.max_concurrent_sections,
        )
        summary = generator.run(req.sections, req.business_info)
        return {
            "success": summary.success_count > 0,
            "successCount": summary.success_count,
            "failureCount": summary.failure_count,
            "sections": [
                {
                    "index": r.index,
                    "type": r.section_type,
                    "imageId": r.image_id,
                    "imageUrl": r.image_url,
                    "error": r.error,
                }
                for r in summary.results
            ],
        }

    return router


def create_app(
    settings: Optional[Settings] = None,
    *,
    broker: Optional[GenerativeEditBroker] = None,
    storage: Optional[ObjectStorage] = None,
    repository: Optional[SectionRepository] = None,
) -> FastAPI:
    settings = settings or load_settings()
    if broker is None and settings.has_api_key:
        broker = build_broker(settings)
    if broker is None:
        logger.warning("GOOGLE_API_KEY not set; generation endpoints will answer 503")

    app = FastAPI(title="Masked Edit Core API")
    app.state.services = Services(
        settings=settings,
        broker=broker,
        storage=storage or build_storage(settings),
        repository=repository or build_repository(settings),
    )
    app.include_router(get_router())
    return app
