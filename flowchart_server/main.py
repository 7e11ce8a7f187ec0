import uvicorn

from flowchart_server.core.app_factory import create_app
from flowchart_server.core.config import settings

app = create_app()


def run() -> None:
    """Serve the app with uvicorn.

    A single worker: rate limit state lives in process memory.
    """
    uvicorn.run(
        app,
        host=settings.app.host,
        port=settings.app.port,
        workers=1,
        log_config=None,
        access_log=settings.app.debug,
    )


if __name__ == "__main__":
    run()
