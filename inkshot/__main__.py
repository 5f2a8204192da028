"""Run the inkshot server.

Usage: python -m inkshot [--config config.yaml] [--host 0.0.0.0] [--port 5001]
"""
import argparse
import logging
from pathlib import Path

import uvicorn

from .config import CONFIG_FILE, Config, write_default_config
from .server import create_app

logger = logging.getLogger("inkshot")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Dashboard screenshot server for e-ink displays")
    parser.add_argument("--config", default=CONFIG_FILE, help=f"Path to YAML config (default: {CONFIG_FILE})")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to listen on (overrides config)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Create default config if it doesn't exist
    if not Path(args.config).exists():
        write_default_config(args.config)

    config = Config(args.config)
    log_level = config.logging_level
    logging.getLogger().setLevel(log_level.upper())
    if args.port:
        config.port = args.port

    logger.info(f"Starting inkshot on {args.host}:{config.port}")
    uvicorn.run(create_app(config), host=args.host, port=config.port, log_level=log_level)


if __name__ == "__main__":
    main()
