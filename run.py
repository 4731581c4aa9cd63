#!/usr/bin/env python3
"""Run the ComputeVis server."""

import logging

import uvicorn

from backend.settings import load_settings


def main():
    """Start the ComputeVis server."""
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "backend.server:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
