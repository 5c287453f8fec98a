"""FastAPI server for the swatch sidecar.

Launched by the wardrobe front end via: swatch-sidecar --port {port}
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal

import uvicorn
from fastapi import FastAPI

from swatch.config import Settings, load_settings
from swatch.models.garment import AppliedGarment
from swatch.routes.tryon import router as tryon_router
from swatch.routes.variations import router as variations_router
from swatch.services.generation_client import GenerationClient, create_generation_client
from swatch.services.materializer import Materializer
from swatch.services.variation_controller import VariationController

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(
    settings: Settings | None = None,
    generation_client: GenerationClient | None = None,
    materializer: Materializer | None = None,
) -> FastAPI:
    """Build the sidecar app with one variation controller for the open garment."""
    settings = settings or load_settings()
    if generation_client is None:
        generation_client = create_generation_client(settings)
    materializer = materializer or Materializer(timeout=settings.fetch_timeout)

    app = FastAPI(
        title="swatch-sidecar",
        version=VERSION,
        description="Python sidecar for garment color variations and virtual try-on",
    )

    def on_apply(content: bytes, garment: AppliedGarment) -> None:
        logger.info(f"Applied garment {garment.id} ({len(content)} bytes)")
        app.state.applied = (content, garment)

    app.state.settings = settings
    app.state.generation_client = generation_client
    app.state.materializer = materializer
    app.state.applied = None
    app.state.controller = VariationController(
        generator=generation_client,
        materialize=materializer.materialize,
        on_apply=on_apply,
    )

    # Register route modules.
    app.include_router(variations_router, prefix="/api")
    app.include_router(tryon_router, prefix="/api")

    @app.get("/api/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": VERSION,
            "generation_available": app.state.generation_client is not None,
        }

    @app.post("/api/shutdown")
    async def shutdown():
        """Graceful shutdown endpoint."""
        # Schedule shutdown after responding.
        asyncio.get_running_loop().call_later(0.5, lambda: os.kill(os.getpid(), signal.SIGTERM))
        return {"status": "shutting_down"}

    return app


def main():
    parser = argparse.ArgumentParser(description="swatch sidecar server")
    parser.add_argument("--port", type=int, required=True, help="Port to listen on")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    args = parser.parse_args()

    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)

    # Print ready signal for the front end.
    print(f"SIDECAR_READY port={args.port}", flush=True)

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
