"""
HTTP API Server for the research pipeline.

Endpoints:
    POST /research          {query, maxResults?} -> {citations, degradedSources, lowConfidence}
    POST /research/answer   same request, plus a synthesized answer
    GET  /health            status and enabled sources

Only the fixed error messages below ever reach the caller; details go to
the log.
"""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from med_research import __version__
from med_research.container import ApplicationContainer, create_container
from med_research.shared.exceptions import (
    ConfigurationError,
    InvalidQueryError,
    MedResearchError,
    ResearchSourcesUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8765

SOURCES_UNAVAILABLE_DETAIL = "Research sources unavailable"
INTERNAL_ERROR_DETAIL = "Internal server error"


# Pydantic models for API requests and responses
class ResearchRequest(BaseModel):
    """Request body for /research."""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    max_results: int | None = Field(default=None, alias="maxResults")


class ResearchResponse(BaseModel):
    """Caller contract of the pipeline."""

    model_config = ConfigDict(populate_by_name=True)

    citations: list[dict[str, Any]]
    degraded_sources: list[str] = Field(alias="degradedSources")
    low_confidence: bool = Field(alias="lowConfidence")


class AnswerResponse(ResearchResponse):
    """Research result plus the synthesized answer."""

    answer: str
    model: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    sources: list[str]


def _container(request: Request) -> ApplicationContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return container


def create_api_server(container: ApplicationContainer | None = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        container: Preconfigured container (tests override providers on it).
            When None, one is built from the environment at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.container = container or create_container()
        pipeline = app.state.container.pipeline()
        logger.info(f"HTTP API server initialized with sources: {pipeline.sources}")

        yield

        logger.info("HTTP API server shutting down")
        for adapter in app.state.container.adapters():
            await adapter.close()

    app = FastAPI(
        title="Medical Research Pipeline API",
        description="Multi-source medical literature retrieval, ranking and citation selection.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint."""
        container = getattr(request.app.state, "container", None)
        if container is None:
            return HealthResponse(status="initializing", version=__version__, sources=[])
        return HealthResponse(status="healthy", version=__version__, sources=container.pipeline().sources)

    @app.post(
        "/research",
        response_model=ResearchResponse,
        responses={
            400: {"description": "Empty or oversized query"},
            503: {"description": "Every source failed"},
        },
    )
    async def research(body: ResearchRequest, request: Request) -> dict[str, Any]:
        """Run the retrieval pipeline for one question."""
        result = await _run_research(_container(request), body)
        return result.to_dict()

    @app.post(
        "/research/answer",
        response_model=AnswerResponse,
        responses={
            400: {"description": "Empty or oversized query"},
            503: {"description": "Every source failed, or no completion model configured"},
        },
    )
    async def research_answer(body: ResearchRequest, request: Request) -> dict[str, Any]:
        """Run the pipeline, then ask the completion model for a cited answer."""
        container = _container(request)
        result = await _run_research(container, body)

        try:
            synthesizer = container.synthesizer()
            answer = await synthesizer.synthesize(
                body.query,
                result.citations,
                low_confidence=result.low_confidence,
                degraded_sources=result.degraded_sources,
            )
        except ConfigurationError as e:
            logger.error(f"Answer synthesis unavailable: {e.to_dict()}")
            raise HTTPException(status_code=503, detail="Answer synthesis unavailable") from e
        except MedResearchError as e:
            logger.error(f"Answer synthesis failed: {e.to_dict()}")
            raise HTTPException(status_code=502, detail="Answer synthesis failed") from e

        return {**result.to_dict(), "answer": answer, "model": synthesizer.model}

    return app


async def _run_research(container: ApplicationContainer, body: ResearchRequest):
    pipeline = container.pipeline()
    try:
        return await pipeline.research(body.query, max_results=body.max_results)
    except InvalidQueryError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ResearchSourcesUnavailableError as e:
        logger.warning(f"Every source failed: {e.to_dict()}")
        raise HTTPException(status_code=503, detail=SOURCES_UNAVAILABLE_DETAIL) from e
    except Exception as e:
        logger.exception(f"Research failed for query {body.query!r}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL) from e


# Create the app instance
app = create_api_server()


def run_api_server(host: str = DEFAULT_API_HOST, port: int = DEFAULT_API_PORT) -> None:
    """
    Run the HTTP API server.

    Args:
        host: Host to bind to (default: 127.0.0.1 for local only)
        port: Port to bind to (default: 8765)
    """
    import uvicorn

    logger.info(f"Starting HTTP API server on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


def main() -> None:
    parser = argparse.ArgumentParser(description="Medical Research Pipeline HTTP API Server")
    parser.add_argument(
        "--host",
        default=os.environ.get("MEDRESEARCH_HOST", DEFAULT_API_HOST),
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("MEDRESEARCH_PORT", str(DEFAULT_API_PORT))),
        help="Port to bind to (default: 8765)",
    )
    parser.add_argument("--email", help="NCBI email (overrides NCBI_EMAIL)")
    parser.add_argument("--api-key", help="NCBI API key (overrides NCBI_API_KEY)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # The lifespan hook reads settings from the environment
    if args.email:
        os.environ["NCBI_EMAIL"] = args.email
    if args.api_key:
        os.environ["NCBI_API_KEY"] = args.api_key

    run_api_server(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
