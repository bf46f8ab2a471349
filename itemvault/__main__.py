import uvicorn

from itemvault.db import initialize_db
from itemvault.logging import configure_logging, reconfigure
from itemvault.settings import settings


def main() -> None:
    configure_logging()
    settings.check_required()
    initialize_db()
    reconfigure()
    uvicorn.run("web.app:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
