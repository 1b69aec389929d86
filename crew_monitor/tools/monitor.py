"""モニター状態の参照ツール。"""

from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from crew_monitor.context import AppContext
from crew_monitor.errors import CrewConfigError


def register_tools(mcp: FastMCP) -> None:
    """モニター状態の参照ツールを登録する。"""

    @mcp.tool()
    async def get_connection_status(ctx: Context = None) -> dict[str, Any]:
        """crew サーバーとの接続状態を取得する。

        Returns:
            接続状態（success, status, last_heartbeat, url, reconnect_pending）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        channel = app_ctx.channel
        return {
            "success": True,
            "status": channel.status.value,
            "last_heartbeat": channel.state.last_heartbeat,
            "url": channel.url,
            "reconnect_pending": channel.reconnect_pending,
        }

    @mcp.tool()
    async def get_transcript(limit: int | None = None, ctx: Context = None) -> dict[str, Any]:
        """会話トランスクリプトを取得する。

        Args:
            limit: 取得する最新メッセージ数（省略時は設定値）

        Returns:
            トランスクリプト（success, messages, total, waiting_for_input, question, options）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        if limit is None:
            limit = app_ctx.settings.transcript_default_limit
        if limit <= 0:
            return {"success": False, "error": f"limit は 1 以上を指定してください: {limit}"}

        transcript = app_ctx.transcript
        return {
            "success": True,
            "messages": transcript.snapshot(limit),
            "total": len(transcript.messages),
            "analysis_in_progress": transcript.analysis_in_progress,
            "waiting_for_input": transcript.is_waiting_for_input,
            "question": transcript.current_question,
            "options": list(transcript.current_options),
        }

    @mcp.tool()
    async def get_task_progress(ctx: Context = None) -> dict[str, Any]:
        """タスク進捗を取得する。

        Returns:
            進捗（success, tasks, current_task_id, progress, config_source）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        return {"success": True, **app_ctx.tracker.snapshot()}

    @mcp.tool()
    async def get_active_agent(ctx: Context = None) -> dict[str, Any]:
        """発言中と推定されるエージェントを取得する。

        Returns:
            アクティブエージェント（success, role, agent, highlighted）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        tracker = app_ctx.tracker
        matched = tracker.find_agent(tracker.active_agent_role) if tracker.active_agent_role else None
        return {
            "success": True,
            "role": tracker.active_agent_role,
            "agent": matched.model_dump(mode="json") if matched else None,
            "highlighted": tracker.is_highlighting,
        }

    @mcp.tool()
    async def list_agents(ctx: Context = None) -> dict[str, Any]:
        """設定済みのエージェントとモデル一覧を取得する。

        Returns:
            エージェント一覧（success, agents, llm_models, count）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        tracker = app_ctx.tracker
        return {
            "success": True,
            "agents": [agent.model_dump(mode="json") for agent in tracker.agents],
            "llm_models": dict(tracker.llm_models),
            "count": len(tracker.agents),
        }

    @mcp.tool()
    async def get_recent_notices(limit: int = 20, ctx: Context = None) -> dict[str, Any]:
        """最近の接続通知を取得する。

        Args:
            limit: 取得件数

        Returns:
            通知一覧（success, notices）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        notices = app_ctx.notifier.recent_notices(limit)
        return {
            "success": True,
            "notices": [notice.model_dump(mode="json") for notice in notices],
        }

    @mcp.tool()
    async def list_crew_types(ctx: Context = None) -> dict[str, Any]:
        """設定サービスから利用可能な crew の種類を取得する。

        Returns:
            crew の種類（success, crew_types, current または error）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        if app_ctx.config_client is None:
            return {"success": False, "error": "crew 設定クライアントが構成されていません"}
        try:
            crew_types = await app_ctx.config_client.fetch_crew_types()
        except CrewConfigError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "crew_types": crew_types, "current": app_ctx.crew_type}
