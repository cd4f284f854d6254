#!/usr/bin/env python3
"""Run the HTTP API."""
import uvicorn

from diffpilot.api.container import get_container

if __name__ == "__main__":
    config = get_container().config
    uvicorn.run(
        "diffpilot.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=True,
    )
