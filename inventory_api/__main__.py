import uvicorn

from .config import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run("inventory_api.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
