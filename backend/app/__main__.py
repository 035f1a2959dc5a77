import argparse
import logging

import uvicorn

from backend.app.config import AppConfig
from backend.app.main import create_app


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="archgraph-backend", description="Serve the architecture graph API"
    )
    parser.add_argument("--host", default=None, help="bind host (default: from config)")
    parser.add_argument("--port", type=int, default=None, help="bind port (default: from config)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    config = AppConfig()
    host = str(args.host or config.host)
    port = int(args.port or config.port)

    uvicorn.run(create_app(config), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
