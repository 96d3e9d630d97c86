"""FastAPI application for the Plumbers Portal billing webhook.

Endpoints:
- GET /api/ping: health check
- POST /api/webhooks/stripe: Stripe event intake
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from mangum import Mangum

from portal_shared.config import WebhookSettings
from portal_shared.utils.logging import configure_logging

from .dependencies import Services, build_services
from .exceptions import register_exception_handlers
from .routes.webhooks import router as webhooks_router

logger = logging.getLogger(__name__)


def create_app(
    settings: WebhookSettings | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Build the application and the services it owns.

    Args:
        settings: Runtime settings. Defaults to WebhookSettings.from_env().
        services: Pre-built service container (tests).
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    settings = settings or WebhookSettings.from_env()

    app = FastAPI(
        title="Plumbers Portal Billing API",
        description="Stripe webhook reconciliation for subscriptions and job payments",
        version="0.1.0",
    )
    app.state.services = services or build_services(settings)

    register_exception_handlers(app)

    # Matches CloudFront routing: /api/* → API Gateway
    app.include_router(webhooks_router, prefix="/api")

    @app.get("/api/ping")
    async def ping() -> dict[str, Any]:
        """Root health check endpoint at /api/ping."""
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "service": "portal-billing",
        }

    logger.info("Billing API created for environment: %s", settings.environment)
    return app


app = create_app()

# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: 8080)
        reload: Enable hot reload for development (default: True)
    """
    import uvicorn

    if reload:
        # Use string reference for reload mode (uvicorn requirement)
        uvicorn.run("portal_api.main:app", host=host, port=port, reload=True, reload_dirs=["src"])
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
