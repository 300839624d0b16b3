"""Run FastAPI backend server."""

import uvicorn

from ifrit.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        log_level=settings.ifrit_log_level.lower(),
    )
