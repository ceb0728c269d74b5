"""
Run the QuantSignal backend server.
"""
import os
import sys

# Set working directory and path
backend_dir = os.path.dirname(os.path.abspath(__file__))
os.chdir(backend_dir)
sys.path.insert(0, backend_dir)

# Load environment
from dotenv import load_dotenv
load_dotenv(os.path.join(backend_dir, ".env"))

import uvicorn

from quantsignal.core.config import get_settings
from quantsignal.core.logging_config import setup_logging

if __name__ == "__main__":
    settings = get_settings()
    logger = setup_logging(settings.log_level)
    logger.info(f"Starting {settings.app_name} server")
    logger.info(f"Working directory: {backend_dir}")
    logger.info(f"API Docs: http://localhost:{settings.port}/docs")

    uvicorn.run(
        "quantsignal.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
