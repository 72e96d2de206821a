import uvicorn

from chatpress.gateway import create_app
from chatpress.gateway.config import Settings
from chatpress.gateway.logging_config import configure_logging


def main() -> None:
    settings = Settings()  # type: ignore
    configure_logging(settings)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
