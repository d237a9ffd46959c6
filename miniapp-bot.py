#!/usr/bin/env python

import argparse
import configparser

from aiohttp import web

from miniapp_bot.config import is_valid_mini_app_url, load_config
from miniapp_bot.web_api import create_web_app


def main():
    parser = argparse.ArgumentParser(description="Telegram Mini App bot backend")
    parser.add_argument("-c", "--config", type=str, default="config.ini", help="Path to config file")
    args = parser.parse_args()

    config_file = configparser.ConfigParser()
    config_file.read(args.config)
    config = load_config(config_file)

    if not config.bot_token:
        print("Warning: TELEGRAM_BOT_TOKEN is not set, outbound messages are disabled")
    if not config.webhook_secret:
        print("Warning: TELEGRAM_WEBHOOK_SECRET is not set, webhook accepts any POST")
    if config.mini_app_url and not is_valid_mini_app_url(config.mini_app_url):
        print(f"Warning: MINI_APP_URL must be an https URL, got {config.mini_app_url!r}")

    app = create_web_app(config)
    print(f"HTTP API starting on port {config.api_port}")
    web.run_app(app, port=config.api_port, print=None)


if __name__ == "__main__":
    main()
