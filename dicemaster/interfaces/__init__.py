"""
Interfaces 模块
接口层：Telegram Bot、HTTP API、命令行
"""
from .api_server import app, run_server
from .telegram_bot import TelegramBot, run_bot

__all__ = [
    "app",
    "run_server",
    "TelegramBot",
    "run_bot",
]
