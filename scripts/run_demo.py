"""
Run the ColorPie API locally.

Usage:
    python scripts/run_demo.py [--host HOST] [--port PORT] [--pool POOL_JSON]

Session defaults come from COLORPIE_MAX_QUESTIONS, COLORPIE_TEMPERATURE and
COLORPIE_SHRINKAGE_FACTOR (environment or ./.env).
"""

import argparse
import os

import uvicorn

from colorpie.api.routes import POOL_PATH_ENV


def main():
    parser = argparse.ArgumentParser(description="ColorPie questionnaire server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--pool", help="JSON question pool replacing the built-in bank")
    args = parser.parse_args()

    if args.pool:
        os.environ[POOL_PATH_ENV] = args.pool

    base = f"http://{args.host}:{args.port}"
    print(f"ColorPie serving at {base} (docs: {base}/docs)")
    print(f"  POST {base}/api/session/start")
    print(f"  POST {base}/api/session/<id>/answer  {{\"score\": 1-7}}")
    print(f"  WS   ws://{args.host}:{args.port}/ws/<id>")

    uvicorn.run("colorpie.api.app:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
