import uvicorn

from captcha_service.config import settings


def main() -> None:
    uvicorn.run(
        "captcha_service.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
