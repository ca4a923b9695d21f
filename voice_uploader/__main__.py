"""Entry point: python -m voice_uploader"""
from __future__ import annotations

import uvicorn

from voice_uploader.config import get_settings
from voice_uploader.logging_config import configure_logging
from voice_uploader.main import create_app


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(
        create_app(settings, configure_logs=False),
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
