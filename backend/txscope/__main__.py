"""Run the server: python -m txscope"""

import uvicorn

from txscope.config import settings


def main() -> None:
    uvicorn.run(
        "txscope.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
