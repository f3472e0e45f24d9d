#!/usr/bin/env python3
"""
stdio-bridge Entrypoint

Dispatches to the appropriate mode based on command line argument.

Modes:
  serve        - Spawn the child and serve HTTP (default)
  init-config  - Write a default config.yaml and exit
"""

import sys


def main():
    mode = sys.argv[1] if len(sys.argv) > 1 else "serve"

    if mode == "serve":
        from stdio_bridge.configs import get_logger, load_config, setup_logging
        from stdio_bridge.controllers.http import run_server
        from stdio_bridge.exceptions import ConfigurationError

        # Initialize logging (must be called before get_logger)
        setup_logging()
        logger = get_logger("entrypoint")

        try:
            config = load_config()
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            sys.exit(1)

        run_server(config)

    elif mode == "init-config":
        from stdio_bridge.configs import create_default_config, get_config_path

        path = get_config_path()
        if create_default_config(path):
            print(f"Wrote {path}")
        else:
            print(f"{path} already exists", file=sys.stderr)

    else:
        print(f"Unknown mode: {mode}", file=sys.stderr)
        print("Usage: stdio-bridge [serve|init-config]", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
