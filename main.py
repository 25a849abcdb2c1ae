"""Entrypoint for running the cierre_caja FastAPI backend locally."""
from __future__ import annotations

import uvicorn

from cierre_caja.config import configure_logging, load_config


if __name__ == "__main__":
    config = load_config()
    configure_logging(config.log_level)
    uvicorn.run(
        "cierre_caja.api:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
