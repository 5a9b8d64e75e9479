"""
Miroyo 入口 - 以 uvicorn 启动成果解析 API (miroyo.api.app)
"""

import logging
import uvicorn

from miroyo.config.settings import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)


def main():
    uvicorn.run(
        "miroyo.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.env == "development",
        log_level="info",
    )


if __name__ == "__main__":
    main()
