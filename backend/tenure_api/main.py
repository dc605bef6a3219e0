"""ASGI entry point for the Tenure queue service"""

import uvicorn

from tenure_api.app import create_app
from tenure_api.core.config import get_settings

app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "tenure_api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    run()
