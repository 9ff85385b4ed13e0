"""
Run the gateway with uvicorn
python -m gateway
"""

import uvicorn

from gateway.core.config import settings


def main():
    uvicorn.run(
        "gateway.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
