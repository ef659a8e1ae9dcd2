#!/usr/bin/env python3
"""
OpenDiary -- student accounts and session authentication over HTTP.

Usage:
  python main.py
  python main.py --host 0.0.0.0 --port 8080
  python main.py --reload

Environment variables (see core/config.py):
  DATABASE_URL              SQLAlchemy URL. Required unless DEBUG=true.
  DEBUG                     true = local SQLite fallback for development.
  SESSION_LIFETIME_SECONDS  Session lifetime, default 2 days.
  BCRYPT_ROUNDS             bcrypt cost factor, default 12.
  LOGIN_RATE_LIMIT          slowapi limit string for /login, default 10/minute.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="OpenDiary HTTP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Bind port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    print(f"  Starting OpenDiary HTTP Server on http://{args.host}:{args.port}")
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
