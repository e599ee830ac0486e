"""Application entry point for the Lucky Draw backend."""

from __future__ import annotations

import uvicorn

from luckydraw import create_app
from luckydraw.core.config_core import get_settings


def main() -> None:
    """Run the backend FastAPI server."""

    settings = get_settings()
    if settings.APP_RELOAD:
        uvicorn.run(
            "luckydraw:create_app",
            factory=True,
            host=settings.APP_HOST,
            port=settings.APP_PORT,
            reload=True,
        )
        return
    uvicorn.run(create_app(), host=settings.APP_HOST, port=settings.APP_PORT)


if __name__ == "__main__":
    main()
