"""Main entry point for the WhatsApp assistant."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from wa_assistant.api import create_fastapi_app
from wa_assistant.api.routes import control
from wa_assistant.app import Application
from wa_assistant.config import Settings
from wa_assistant.logging_config import setup_logging
from sim import Sim


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    # Get configuration from environment
    settings = Settings.from_env()
    setup_logging(settings)
    api_url = f"http://{settings.api_host}:{settings.api_port}"

    # Create SIM instance for the control router
    control.set_sim_instance(Sim(api_url=api_url, app_secret=settings.meta_app_secret))

    # Create FastAPI app
    app = create_fastapi_app(Application(settings))

    # Run with uvicorn
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
