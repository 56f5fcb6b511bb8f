#!/usr/bin/env python3
"""Run the versioned catalog service under uvicorn."""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from .config import Settings
from .runtime import create_app


def main() -> None:
    """Minimal versionic server."""
    load_dotenv()
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info(
        "Serving Books from %s (update=%s, delete=%s, fields=%s)",
        settings.database_url,
        settings.update_policy.value,
        settings.delete_policy.value,
        settings.field_policy.value,
    )

    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
