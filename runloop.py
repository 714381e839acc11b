#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IMAP IDLE watcher daemon.
Watches every configured account using IDLE and runs its commands on wake-up.
Reconnects after a fixed delay on failures; runs until interrupted.
"""

import argparse
import sys

from loguru import logger

import config_data
import log_utils
from errors import ConfigError
from supervisor import Supervisor


def build_parser():
    parser = argparse.ArgumentParser(
        prog=config_data.APP_NAME,
        description="Synchronise your mail using IMAP, with IDLE support",
    )
    parser.add_argument(
        "-c", "--config", metavar="CONFIG", help="Path to config file"
    )
    parser.add_argument(
        "-D", "--debug", action="store_true", help="Enable debug logging"
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        path = args.config or config_data.find_config_file()
        logger.info(f"using configuration file: {path}")
        settings = config_data.load_settings(path)
    except ConfigError as e:
        logger.error(f"{e}")
        return 1

    level = "debug" if args.debug else settings.log.level
    log_utils.setup_logging(level, settings.log.file)

    logger.info("starting idlesync")
    Supervisor(settings).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
