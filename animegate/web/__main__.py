"""
CLI entry point for the animegate web server.

Usage:
    python -m animegate.web --port 3000
    animegate-web -c config.yaml
"""

import argparse
import sys

from ..config import GateConfig
from ..utils.logging import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        description="animegate proxy server",
        prog="animegate-web",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Server port (default: from config, 3000)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Server host (default: from config, 0.0.0.0)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: from config, INFO)",
    )

    args = parser.parse_args()

    config = GateConfig.load(args.config) if args.config else GateConfig()
    if args.log_level:
        config.log_level = args.log_level
    host = args.host or config.host
    port = args.port or config.port

    setup_logging(config)

    try:
        import uvicorn
    except ImportError:
        print(
            "uvicorn is required. Install with: pip install 'animegate[web]'",
            file=sys.stderr,
        )
        sys.exit(1)

    from .server import create_app

    app = create_app(config)

    print(f"\n  animegate proxy")
    print(f"  Upstream: {config.upstream_base_url}")
    print(f"  URL: http://{host}:{port}/api")
    print()

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
