"""
DiceMaster 命令行入口

    python -m dicemaster bot            启动 Telegram Bot
    python -m dicemaster api            启动 HTTP 服务
    python -m dicemaster cli            交互式掷骰
    python -m dicemaster roll "A 1d20>15"
    python -m dicemaster entropy        刷新并查看区块哈希
"""
import argparse
import asyncio
import sys

from .components.resolver import Resolver
from .interfaces import cli_runner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dicemaster", description="DnD DM - The Dice Master")
    subparsers = parser.add_subparsers(dest="command", help="可用命令")

    subparsers.add_parser("bot", help="启动 Telegram 内联查询 Bot")

    api_parser = subparsers.add_parser("api", help="启动 HTTP 服务")
    api_parser.add_argument("--host", default=None, help="监听地址")
    api_parser.add_argument("--port", type=int, default=None, help="监听端口")
    api_parser.add_argument("--reload", action="store_true", default=None, help="启用热重载")

    subparsers.add_parser("cli", help="交互式掷骰")

    roll_parser = subparsers.add_parser("roll", help="掷一次骰子")
    roll_parser.add_argument("query", nargs="*", help="查询文本，如 智力 A 1d20+2>15")

    subparsers.add_parser("entropy", help="刷新并查看区块哈希")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "bot":
        from .interfaces.telegram_bot import run_bot
        run_bot()
    elif args.command == "api":
        from .interfaces.api_server import run_server
        run_server(host=args.host, port=args.port, reload=args.reload)
    elif args.command == "cli":
        cli_runner.main()
    elif args.command == "roll":
        print(asyncio.run(cli_runner.roll_once(Resolver(), " ".join(args.query))))
    elif args.command == "entropy":
        return 0 if asyncio.run(cli_runner.show_entropy()) else 1
    else:
        parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
