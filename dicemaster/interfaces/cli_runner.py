"""
命令行掷骰工具
用于在终端里直接测试查询解析与熵源
"""
import asyncio
from datetime import datetime
from typing import Optional

from ..core import get_logger, get_settings
from ..core.exceptions import LimitExceeded
from ..components.entropy import EntropyCache, get_entropy_cache
from ..components.resolver import Resolver
from . import render

logger = get_logger(__name__)


async def roll_once(resolver: Resolver, query: str) -> str:
    """处理一条查询，返回要打印的文本"""
    try:
        resolution = await resolver.resolve(query)
    except LimitExceeded as e:
        return f"❌ {render.render_limit_text(e)}"

    return f"{render.render_check_title(resolution)}\n{render.render_check_text(resolution)}"


async def run_interactive_session(resolver: Optional[Resolver] = None):
    """交互式掷骰"""
    resolver = resolver or Resolver()

    print("\n" + "=" * 70)
    print("  DiceMaster - 掷骰测试工具")
    print("=" * 70)
    print(render.render_help_text(get_settings().dice))
    print("\n💡 输入查询掷骰，输入 'quit' 或 'exit' 退出")
    print("=" * 70)

    while True:
        try:
            user_input = input("\n🎲 >>> ").strip()

            if user_input.lower() in ['quit', 'exit', 'q']:
                print("\n👋 再见！")
                break

            print(await roll_once(resolver, user_input))

        except (KeyboardInterrupt, EOFError):
            print("\n👋 再见！")
            break
        except Exception as e:
            logger.error(f"处理输入时出错: {e}", exc_info=True)
            print(f"\n❌ 发生错误: {e}")


async def show_entropy(cache: Optional[EntropyCache] = None) -> bool:
    """强制刷新一次区块哈希并打印当前状态"""
    cache = cache or get_entropy_cache()
    ok = await cache.refresh()
    state = await cache.snapshot()

    refreshed = (
        datetime.fromtimestamp(state.last_refreshed_at).strftime("%Y-%m-%d %H:%M:%S")
        if state.last_refreshed_at else "从未"
    )
    print(f"刷新{'成功' if ok else '失败'}")
    print(f"  - 区块哈希: {state.raw_hash or '(空)'}")
    print(f"  - 上次刷新: {refreshed}")
    print(f"  - 已使用次数: {state.draws_since_refresh}")
    return ok


def main():
    """交互模式入口"""
    try:
        asyncio.run(run_interactive_session())
    except Exception as e:
        logger.error(f"程序异常退出: {e}", exc_info=True)
        print(f"\n❌ 程序异常: {e}")
