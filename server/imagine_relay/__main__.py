"""Run the relay with uvicorn: ``python -m imagine_relay``."""

import uvicorn

from imagine_relay.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "imagine_relay.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_config=None,  # create_app() installs structlog on the root logger
    )


if __name__ == "__main__":
    main()
