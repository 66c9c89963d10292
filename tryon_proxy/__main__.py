import uvicorn
from dotenv import load_dotenv

from .config import Settings


def main() -> None:
    load_dotenv()
    settings = Settings.from_env()
    uvicorn.run(
        "tryon_proxy.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
