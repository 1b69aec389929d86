"""Crew Monitor MCP Server エントリーポイント。"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from crew_monitor.config.settings import get_settings
from crew_monitor.context import AppContext, build_app_context
from crew_monitor.tools import register_all_tools

# ログ設定（stderrに出力）
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """サーバーライフサイクルを管理する。

    起動時に crew 構成を読み込んで WebSocket 接続を開始し、
    終了時に接続と再接続タイマーを破棄する。

    Args:
        server: FastMCPサーバーインスタンス

    Yields:
        アプリケーションコンテキスト
    """
    logger.info("Crew Monitor MCP Server を起動しています...")
    settings = get_settings()
    app_ctx = build_app_context(settings)
    await app_ctx.start()

    try:
        yield app_ctx
    finally:
        logger.info("サーバーをシャットダウンしています...")
        await app_ctx.shutdown()


# FastMCPサーバーを作成
mcp = FastMCP("Crew Monitor", lifespan=app_lifespan)
register_all_tools(mcp)


def main() -> None:
    """MCPサーバーを起動する。"""
    mcp.run()


if __name__ == "__main__":
    main()
