"""
Telegram 内联查询 Bot
基于 Bot API 长轮询，使用 aiohttp 直接调用，不依赖第三方 Bot 框架
每条内联查询在独立的 Task 中处理
"""
import asyncio
from typing import Any, Dict, List, Optional, Set

import aiohttp

from ..core import get_logger, get_settings
from ..core.config import DiceConfig, TelegramConfig
from ..core.exceptions import LimitExceeded, TelegramApiError
from ..components.resolver import Resolver
from . import render

logger = get_logger(__name__)

MARKDOWN_V2 = "MarkdownV2"
MARKDOWN = "Markdown"
POLL_RETRY_DELAY = 3.0


def article(result_id: str, title: str, description: str, text: str, parse_mode: Optional[str] = None) -> Dict[str, Any]:
    """构建 InlineQueryResultArticle"""
    content: Dict[str, Any] = {"message_text": text}
    if parse_mode:
        content["parse_mode"] = parse_mode
    return {
        "type": "article",
        "id": result_id,
        "title": title,
        "description": description,
        "input_message_content": content,
    }


class TelegramBot:
    """内联查询掷骰 Bot"""

    def __init__(
        self,
        token: str,
        resolver: Resolver,
        api_url: str = "https://api.telegram.org",
        poll_timeout: int = 10,
        dice_config: Optional[DiceConfig] = None,
        retry_delay: float = POLL_RETRY_DELAY,
    ):
        self.token = token
        self.resolver = resolver
        self.api_url = api_url.rstrip("/")
        self.poll_timeout = poll_timeout
        self.retry_delay = retry_delay
        self.dice_config = dice_config or resolver.dice_config
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: TelegramConfig, resolver: Optional[Resolver] = None) -> "TelegramBot":
        if not config.token:
            raise ValueError("TELEGRAM_BOT_TOKEN 未配置")
        return cls(
            token=config.token,
            resolver=resolver or Resolver(),
            api_url=config.api_url,
            poll_timeout=config.poll_timeout,
        )

    def _method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.token}/{method}"

    async def call(self, session: aiohttp.ClientSession, method: str, payload: Optional[dict] = None) -> Any:
        """
        调用 Bot API，返回 result 字段
        响应不是 JSON 对象（如代理返回的 502 HTML 页面）时同样抛出 TelegramApiError
        """
        async with session.post(self._method_url(method), json=payload or {}) as response:
            status = response.status
            try:
                data = await response.json(content_type=None)
            except ValueError as e:
                raise TelegramApiError(method, f"HTTP {status}, 响应不是 JSON: {e}", status) from e

        if not isinstance(data, dict):
            raise TelegramApiError(method, f"HTTP {status}, 响应不是 JSON 对象", status)
        if not data.get("ok"):
            raise TelegramApiError(method, data.get("description", "unknown error"), data.get("error_code"))
        return data.get("result")

    def help_article(self) -> Dict[str, Any]:
        return article(
            "help",
            render.HELP_TITLE,
            render.HELP_DESCRIPTION,
            render.render_help_text(self.dice_config, markdown_v2=True),
            MARKDOWN_V2,
        )

    async def build_results(self, query_text: str) -> List[Dict[str, Any]]:
        """内联查询的候选结果，末尾总是附带帮助"""
        try:
            resolution = await self.resolver.resolve(query_text)
        except LimitExceeded as e:
            limit_text = render.render_limit_text(e)
            return [
                article("limit", render.LIMIT_TITLE, limit_text, limit_text),
                self.help_article(),
            ]
        except Exception as e:
            logger.error(f"处理查询失败: {query_text!r}: {e}", exc_info=True)
            return [
                article(
                    "error",
                    render.ERROR_TITLE,
                    render.ERROR_DESCRIPTION,
                    render.render_error_text(query_text, e),
                    MARKDOWN,
                ),
                self.help_article(),
            ]

        return [
            article(
                "check",
                render.render_check_title(resolution),
                render.CHECK_EXAMPLE,
                render.render_check_text(resolution, markdown_v2=True),
                MARKDOWN_V2,
            ),
            article(
                "number",
                render.render_number_title(resolution),
                render.NUMBER_EXAMPLE,
                render.render_roll_text(resolution, markdown_v2=True),
                MARKDOWN_V2,
            ),
            self.help_article(),
        ]

    async def handle_inline_query(self, session: aiohttp.ClientSession, inline_query: Dict[str, Any]):
        sender = inline_query.get("from", {})
        logger.info(f"用户查询: id={sender.get('id')}, username={sender.get('username')}")

        results = await self.build_results(inline_query.get("query", ""))
        try:
            await self.call(session, "answerInlineQuery", {
                "inline_query_id": inline_query["id"],
                "results": results,
                "cache_time": 0,
                "is_personal": True,
            })
        except (aiohttp.ClientError, asyncio.TimeoutError, TelegramApiError) as e:
            logger.error(f"回复内联查询失败: {e}")

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"处理内联查询的任务异常退出: {error!r}", exc_info=error)

    async def _drain_tasks(self):
        """取消并回收尚未完成的查询任务"""
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def poll_once(self, session: aiohttp.ClientSession, offset: int) -> int:
        """
        拉取一批更新并为每条内联查询派发任务，返回新的 offset
        拉取失败时记录日志、等待 retry_delay 后返回原 offset
        """
        try:
            updates = await self.call(session, "getUpdates", {
                "offset": offset,
                "timeout": self.poll_timeout,
                "allowed_updates": ["inline_query"],
            })
        except (aiohttp.ClientError, asyncio.TimeoutError, TelegramApiError) as e:
            logger.warning(f"拉取更新失败，{self.retry_delay} 秒后重试: {e}")
            await asyncio.sleep(self.retry_delay)
            return offset

        for update in updates or []:
            offset = max(offset, update["update_id"] + 1)
            inline_query = update.get("inline_query")
            if inline_query:
                self._spawn(self.handle_inline_query(session, inline_query))
        return offset

    async def run(self):
        """长轮询主循环"""
        timeout = aiohttp.ClientTimeout(total=self.poll_timeout + 10)
        offset = 0

        async with aiohttp.ClientSession(timeout=timeout) as session:
            me = await self.call(session, "getMe")
            logger.info(
                f"Bot 启动: id={me.get('id')}, username={me.get('username')}, "
                f"name={me.get('first_name')}, api={self.api_url}"
            )

            try:
                while True:
                    offset = await self.poll_once(session, offset)
            finally:
                await self._drain_tasks()


def run_bot():
    """启动 Bot"""
    settings = get_settings()
    bot = TelegramBot.from_config(settings.telegram)
    logger.info("Bot 已启动")
    try:
        asyncio.run(bot.run())
    except KeyboardInterrupt:
        logger.info("Bot 已停止")
