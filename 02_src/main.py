"""Main entry point for the tracescope introspection server."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from tracescope.api import create_fastapi_app
from tracescope.app import TraceEngine
from tracescope.config import EngineConfig
from tracescope.logging_config import setup_logging


def main():
    """Run the introspection server."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    config = EngineConfig.from_env()
    setup_logging(config)

    engine = TraceEngine(config)
    app = create_fastapi_app(engine)

    uvicorn.run(
        app,
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
