"""FastAPI application entrypoint for depaudit service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..config import DepAuditConfig, load_config
from ..engine import DepsAnalysis
from ..report import load_document, write_document

EngineFactory = Callable[[DepAuditConfig], DepsAnalysis]


class AnalyzeRequest(BaseModel):
    config_path: str
    incremental: Optional[bool] = None
    output: Optional[str] = None


class AnalyzeResponse(BaseModel):
    status: str
    output_path: Optional[str] = None
    ghost_count: int
    diagnostic_count: int
    document: Dict[str, Any]


class HealthResponse(BaseModel):
    status: str


def _default_engine(config: DepAuditConfig) -> DepsAnalysis:
    return DepsAnalysis(config)


def create_app(engine_factory: EngineFactory = _default_engine) -> FastAPI:
    """Create the FastAPI application exposing depaudit operations."""

    app = FastAPI(title="depaudit service", version=__version__)

    async def get_engine_factory() -> EngineFactory:
        return engine_factory

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/analyze", response_model=AnalyzeResponse)
    async def analyze(
        payload: AnalyzeRequest,
        factory: EngineFactory = Depends(get_engine_factory),
    ) -> AnalyzeResponse:
        def _run() -> AnalyzeResponse:
            config_path = Path(payload.config_path).expanduser()
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration not found: {payload.config_path}")
            config = load_config(config_path)
            if payload.incremental is not None:
                config.incremental = payload.incremental
            result = factory(config).run()
            output_path = None
            if payload.output:
                output_path = write_document(result, config.resolve(payload.output))
            return AnalyzeResponse(
                status="ok",
                output_path=str(output_path) if output_path else None,
                ghost_count=result.ghost_count,
                diagnostic_count=len(result.buckets.diagnostics),
                document=result.to_document(),
            )

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _run)

    @app.get("/report")
    async def report(path: str) -> Dict[str, Any]:
        document_path = Path(path).expanduser()
        if not document_path.is_file():
            raise FileNotFoundError(f"Report not found: {path}")
        return load_document(document_path)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["create_app", "run_service"]
