#!/usr/bin/env python3
"""
Print Agent - HTTP service that renders tickets and bills to ESC/POS bytes
and delivers them to network thermal printers.

Usage:
  python app.py                     # listen on 0.0.0.0:5000
  python app.py --port 8080 --debug
"""

from __future__ import annotations

import argparse
import os

from print_agent import create_app

app = create_app()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Print Agent HTTP service")
    parser.add_argument("--host", default=os.environ.get("PRINTAGENT_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("PRINTAGENT_PORT", 5000)))
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
