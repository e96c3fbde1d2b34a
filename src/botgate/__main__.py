"""Run the relay with uvicorn: ``python -m botgate``."""

import uvicorn

from botgate.api.factory import create_app
from botgate.config import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
