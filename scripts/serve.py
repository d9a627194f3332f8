#!/usr/bin/env python3
"""
Start the Zoom/GHL bridge server.

Usage:
    python scripts/serve.py [--host HOST] [--port PORT] [--reload]

Options:
    --host HOST   Bind address (default: BRIDGE_HOST or 0.0.0.0)
    --port PORT   Port (default: PORT or 3000)
    --reload      Restart on code changes (development only)
"""
# Load environment variables from .env FIRST, before any other imports
from pathlib import Path
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

import argparse
import logging
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from config.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run the Zoom/GHL bridge")
    parser.add_argument("--host", default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Port")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()

    logger.info(f"Server starting on {args.host}:{args.port}")
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,  # keep the logging configured above
    )


if __name__ == "__main__":
    main()
