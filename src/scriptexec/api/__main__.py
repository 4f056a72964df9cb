"""Run the API with Uvicorn using the configured host and port."""

from __future__ import annotations

import uvicorn

from ..config import Config


def main() -> None:
    config = Config.from_env()
    uvicorn.run("scriptexec.api.main:app", host=config.host, port=config.port, log_level="info")


if __name__ == "__main__":
    main()
