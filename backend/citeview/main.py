from contextlib import asynccontextmanager
from functools import lru_cache
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from citeview.api.routers.previews import build_previews_router
from citeview.api.routers.rendering import build_rendering_router
from citeview.api.routers.system import router as system_router
from citeview.config import settings
from citeview.markup.diagrams import DiagramRenderer, KrokiDiagramRenderer
from citeview.markup.pipeline import MarkdownContentRenderer
from citeview.observability import (
    configure_logging,
    normalize_request_id,
    reset_request_id,
    sanitize_for_logging,
    set_request_id,
)
from citeview.preview.controller import PreviewController
from citeview.preview.docx_converter import DocxHtmlConverter
from citeview.preview.fetcher import DocumentFetcher
from citeview.preview.pdf_renderer import PypdfRenderService
from citeview.preview.registry import PreviewRegistry

logger = logging.getLogger("citeview.api")


@lru_cache(maxsize=1)
def _cached_diagram_renderer() -> DiagramRenderer | None:
    if not settings.diagram_renderer_url.strip():
        return None
    return KrokiDiagramRenderer(
        base_url=settings.diagram_renderer_url,
        config=settings.diagram_config(),
        timeout_seconds=settings.diagram_timeout_seconds,
    )


@lru_cache(maxsize=1)
def _cached_answer_renderer() -> MarkdownContentRenderer:
    return MarkdownContentRenderer(
        diagram_renderer=_cached_diagram_renderer(),
        placeholder=settings.searching_placeholder,
    )


def get_answer_renderer() -> MarkdownContentRenderer:
    return _cached_answer_renderer()


def build_preview_controller() -> PreviewController:
    fetcher = DocumentFetcher(timeout_seconds=settings.http_timeout_seconds)
    return PreviewController(
        pdf_service=PypdfRenderService(fetcher),
        fetcher=fetcher,
        docx_converter=DocxHtmlConverter(),
        url_builder=settings.document_url,
        messages=settings.preview_messages(),
    )


@lru_cache(maxsize=1)
def _cached_preview_registry() -> PreviewRegistry:
    return PreviewRegistry(build_preview_controller, max_previews=settings.max_previews)


def get_preview_registry() -> PreviewRegistry:
    return _cached_preview_registry()


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    logger.info(
        "application_startup",
        extra={
            "event": "application_startup",
            "environment": settings.app_env,
            "diagram_renderer_enabled": _cached_diagram_renderer() is not None,
        },
    )
    yield
    logger.info("application_shutdown", extra={"event": "application_shutdown"})


def create_app() -> FastAPI:
    cors_origins = settings.cors_origins_list
    if settings.cors_allow_credentials and any(origin == "*" for origin in cors_origins):
        raise RuntimeError("Invalid CORS_ORIGINS: wildcard '*' is not allowed when credentials are enabled.")

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", settings.request_id_header],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = normalize_request_id(request.headers.get(settings.request_id_header))
        request.state.request_id = request_id
        token = set_request_id(request_id)
        started = time.perf_counter()

        logger.info(
            "request_started",
            extra={
                "event": "request_started",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query": sanitize_for_logging(dict(request.query_params)),
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response.headers[settings.request_id_header] = request_id
            logger.info(
                "request_completed",
                extra={
                    "event": "request_completed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
            )
            return response
        except Exception:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.exception(
                "request_failed",
                extra={
                    "event": "request_failed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": elapsed_ms,
                },
            )
            raise
        finally:
            reset_request_id(token)

    app.include_router(system_router)
    app.include_router(build_rendering_router(get_answer_renderer=lambda: get_answer_renderer()))
    app.include_router(build_previews_router(get_preview_registry=lambda: get_preview_registry()))
    return app


app = create_app()
