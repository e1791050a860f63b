import uvicorn

from taskboard.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("taskboard.app:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
