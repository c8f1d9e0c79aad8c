"""Application factory for the relay service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .chat.models import ModelBackend
from .chat.streamer import CompletionStreamer
from .chat_backends import GeminiClient, OpenAIChatClient, aclose_backends
from .config import Settings, get_settings
from .routers.chat import router as chat_router
from .routers.realtime import router as realtime_router
from .routers.voices import router as voices_router
from .services.session_manager import SessionDefaults, SessionManager
from .services.stt_service import TranscriptionService
from .services.tts_service import SynthesisService
from .services.voices import selector_for_name

SERVICE_NAME = "Botanist AI Voice Service"


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("voice_relay").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Request bodies carry API keys at DEBUG
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def _log_credentials(settings: Settings) -> None:
    logger = logging.getLogger(__name__)
    logger.info("API secret key configured: %s", settings.api_secret_key is not None)
    logger.info("OpenAI API key configured: %s", settings.openai_api_key is not None)
    logger.info("Gemini API key configured: %s", settings.gemini_api_key is not None)
    logger.info(
        "Google credentials configured: %s",
        settings.google_credentials_json is not None
        or settings.google_application_credentials is not None,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    _configure_logging()

    settings = settings or get_settings()
    _log_credentials(settings)

    default_models = {
        ModelBackend.PRIMARY: settings.default_model_id,
        ModelBackend.SECONDARY: settings.default_gemini_model,
    }
    session_manager = SessionManager(
        SessionDefaults(
            model_ids=default_models,
            voice=selector_for_name(settings.default_voice),
            context_limit=settings.context_limit,
            chunk_threshold=settings.audio_chunk_threshold,
        ),
        idle_ttl=timedelta(seconds=settings.session_idle_ttl_seconds),
    )
    streamer = CompletionStreamer(
        {
            ModelBackend.PRIMARY: OpenAIChatClient(settings),
            ModelBackend.SECONDARY: GeminiClient(settings),
        },
        system_prompt=settings.system_prompt,
        default_models=default_models,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )

    eviction_interval_seconds = settings.session_eviction_interval_seconds
    eviction_task: asyncio.Task | None = None

    async def _session_eviction_loop() -> None:
        while True:
            await asyncio.sleep(eviction_interval_seconds)
            try:
                session_manager.evict_idle()
            except Exception as exc:
                logging.warning("Session eviction run failed: %s", exc)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal eviction_task
        eviction_task = asyncio.create_task(_session_eviction_loop())
        try:
            yield
        finally:
            eviction_task.cancel()
            with suppress(asyncio.CancelledError):
                await eviction_task
            try:
                await asyncio.wait_for(aclose_backends(), timeout=10.0)
            except asyncio.TimeoutError:
                logging.warning("Backend client shutdown timed out after 10s")

    app = FastAPI(
        title=SERVICE_NAME,
        version="0.1.0",
        description="Realtime voice and text relay between clients and chat models.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_manager = session_manager
    app.state.completion_streamer = streamer
    app.state.transcriber = TranscriptionService(settings)
    app.state.synthesizer = SynthesisService(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    app.include_router(chat_router)
    app.include_router(voices_router)
    app.include_router(realtime_router)

    @app.get("/", response_class=PlainTextResponse, tags=["health"])
    async def banner() -> str:
        return f"{SERVICE_NAME} is running"

    @app.get("/api/health", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok", "message": f"{SERVICE_NAME} is healthy"}

    return app


__all__ = ["create_app"]
