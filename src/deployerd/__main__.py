# __main__.py
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from dotenv import load_dotenv

from deployerd.errors import ConfigError
from deployerd.github import GitHubAPI, Target, create_session, make_user_agent
from deployerd.poller import Poller
from deployerd.settings import Settings, load_settings

logger = logging.getLogger("deployerd")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="deployerd",
        description="Poll a GitHub repository and unpack each new commit on main",
    )
    parser.add_argument("gh_user", help="Repository owner (user or organization)")
    parser.add_argument("gh_repo", help="Repository name")
    args = parser.parse_args(argv)
    try:
        args.target = Target(args.gh_user, args.gh_repo)
    except ValueError as exc:
        parser.error(str(exc))
    return args


async def serve(target: Target, settings: Settings, user_agent: str) -> None:
    async with create_session(settings, user_agent) as session:
        api = GitHubAPI(session, api_url=settings.api_url)
        poller = Poller(
            target,
            api,
            settings.destination,
            interval=settings.poll_interval,
            strip_top_level=True,
        )
        await poller.run_forever()


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Invalid configuration: %s", exc)
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Starting deployerd")
    logger.debug("Arguments: %s", args)

    try:
        user_agent = make_user_agent()
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    target = args.target
    logger.info(
        "Watching %s every %.0fs, unpacking to %s",
        target,
        settings.poll_interval,
        settings.destination,
    )
    try:
        asyncio.run(serve(target, settings, user_agent))
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping")
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
