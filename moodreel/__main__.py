"""
MoodReel — Application entry point.

Run with:  python -m moodreel
Set APP_RELOAD=true to restart on code changes during development.
"""

import uvicorn

from moodreel.config import settings


def main() -> None:
    uvicorn.run(
        "moodreel.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level,
        reload=settings.app_reload,
    )


if __name__ == "__main__":
    main()
