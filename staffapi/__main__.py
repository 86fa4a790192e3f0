from __future__ import annotations

import uvicorn

from staffapi.config import Settings


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run(
        "staffapi.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        proxy_headers=True,
        log_level=settings.log_level.lower(),
        server_header=False,
    )


if __name__ == "__main__":
    main()
