"""MCP Tools モジュール。"""

from mcp.server.fastmcp import FastMCP

from crew_monitor.tools import control, monitor


def register_all_tools(mcp: FastMCP) -> None:
    """全ツールをMCPサーバーに登録する。

    Args:
        mcp: FastMCPインスタンス
    """
    # 状態参照
    monitor.register_tools(mcp)

    # 分析操作・設定送信
    control.register_tools(mcp)
