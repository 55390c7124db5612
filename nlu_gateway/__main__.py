import logging
from os import getenv

import uvicorn

from .main import application


def main():
    logging.basicConfig(
        level=getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(getenv("PORT", "8080"))
    logging.getLogger(__name__).info("API.ai proxy server running on port: %d", port)
    uvicorn.run(application, host=getenv("HOST", "0.0.0.0"), port=port)


if __name__ == "__main__":
    main()
