# File: civicbot/cli.py
# Project: civic-report-bot
"""
Process entry point.

    civicbot serve      HTTP API plus the bot (webhook or long polling)
    civicbot init-db    create missing tables without alembic
    civicbot check-db   connect once and print the server version
"""
import argparse
import logging

from dotenv import load_dotenv

# .env values land in os.environ as well as in Settings
load_dotenv()

from civicbot.core.config import settings  # noqa: E402

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = None) -> None:
    logging.basicConfig(format=LOG_FORMAT, level=(level or settings.log_level).upper())


def cmd_serve(args) -> None:
    import uvicorn
    uvicorn.run("civicbot.main:app", host=args.host, port=args.port or settings.port, log_level=args.log_level.lower())


def cmd_init_db(args) -> None:
    from civicbot.db.session import init_db
    init_db()
    logging.getLogger(__name__).info("tables created")


def cmd_check_db(args) -> None:
    from sqlalchemy import text
    from civicbot.db.session import engine
    with engine.connect() as conn:
        print("select 1 ->", conn.scalar(text("select 1")))
        if engine.dialect.name == "postgresql":
            print("server version ->", conn.scalar(text("select version()")))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="civicbot", description="Civic issue reporting bot")
    parser.add_argument("--log-level", default=settings.log_level)
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API and the bot")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    init = sub.add_parser("init-db", help="create database tables")
    init.set_defaults(func=cmd_init_db)

    check = sub.add_parser("check-db", help="test the database connection")
    check.set_defaults(func=cmd_check_db)
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
