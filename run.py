import uvicorn

from app.core.config import settings
from app.utils.logging import setup_logging

if __name__ == "__main__":
    setup_logging("battle.log", level="DEBUG" if settings.is_dev else "INFO")
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=3011,
        reload=settings.is_dev,
        log_config=None,
        log_level=None,
    )
