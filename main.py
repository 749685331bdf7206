"""
Main entrypoint: FastAPI server for mint confirmation and ownership audits.

The periodic ownership audit runs as its own process:
  python -m backend_carstarz.reconciliation.scheduler

Env: DATABASE_URL, CHAIN_RPC_URL, VEHICLE_REGISTRY_ADDRESS, API_HOST, API_PORT, LOG_LEVEL, etc.

API only: uvicorn backend_carstarz.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_carstarz.carstarz_logging import get_logger
from backend_carstarz.config import get_settings

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    settings = get_settings()

    from backend_carstarz.api_server.server import create_app
    import uvicorn

    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    uvicorn.run(
        create_app(),
        host=settings.api_host,
        port=settings.api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
