"""Entry point for chatkeeper.

  chatkeeper                      run with ./settings.json and CHATKEEPER_* env
  chatkeeper --config path.json   run with an explicit settings file
  chatkeeper --verbose            debug logging
  chatkeeper listen <channel>     add a channel to the listening list
  chatkeeper unlisten <channel>   mark a channel inactive
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from chatkeeper.bot import ChatkeeperBot
from chatkeeper.config import AppConfig
from chatkeeper.errors import ConfigurationError, PersistenceError, SessionConnectionError
from chatkeeper.membership.reconciler import strip_sigil
from chatkeeper.storage.store import MessageStore

logger = logging.getLogger("chatkeeper")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="chatkeeper — Twitch chat logger")
    parser.add_argument("--config", "-c", help="Path to settings JSON file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    sub = parser.add_subparsers(dest="command")
    listen = sub.add_parser("listen", help="Add or re-activate a channel")
    listen.add_argument("channel")
    unlisten = sub.add_parser("unlisten", help="Mark a channel inactive")
    unlisten.add_argument("channel")
    return parser


def load_config(path: str | None) -> AppConfig:
    """Load and validate settings. Raises ConfigurationError."""
    config = AppConfig.load(path)
    problems = config.validate()
    if problems:
        raise ConfigurationError("; ".join(problems))
    return config


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error("Config error: %s", e)
        return 1

    logger.info("Connecting to database ...")
    try:
        store = MessageStore.from_url(config.database_url)
        store.create_schema()
    except (ValueError, PersistenceError) as e:
        logger.error("Database setup failed: %s", e)
        return 1

    if args.command in ("listen", "unlisten"):
        name = strip_sigil(args.channel.strip().lower())
        try:
            store.set_listening(name, active=args.command == "listen")
        except PersistenceError as e:
            logger.error("%s", e)
            return 1
        logger.info("%s %s", "Listening to" if args.command == "listen" else "Stopped listening to", name)
        return 0

    bot = ChatkeeperBot(config, store)

    def _on_signal(signum, frame):
        bot.shutdown()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    try:
        bot.run()
    except SessionConnectionError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
