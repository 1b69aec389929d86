"""分析の開始・入力送信・設定送信ツール。"""

import logging
from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from crew_monitor.context import AppContext
from crew_monitor.models.frame import build_start_analysis_frame, build_user_input_frame
from crew_monitor.models.message import DeliveryStatus, MessageRole

logger = logging.getLogger(__name__)


def register_tools(mcp: FastMCP) -> None:
    """操作系ツールを登録する。"""

    @mcp.tool()
    async def connect_channel(ctx: Context = None) -> dict[str, Any]:
        """crew サーバーへの接続を開始する（接続済みなら何もしない）。

        Returns:
            接続結果（success, status）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        await app_ctx.channel.connect()
        return {"success": app_ctx.channel.is_connected, "status": app_ctx.channel.status.value}

    @mcp.tool()
    async def start_analysis(
        topic: str,
        crew_type: str | None = None,
        ctx: Context = None,
    ) -> dict[str, Any]:
        """分析を開始する。

        進捗をリセットし、start_analysis フレームを送信する。

        Args:
            topic: 分析テーマ
            crew_type: crew の種類（省略時は現在の種類）

        Returns:
            開始結果（success, crew_type, message または error）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        if not topic.strip():
            return {"success": False, "error": "分析テーマを指定してください"}

        if crew_type and crew_type != app_ctx.crew_type:
            await app_ctx.tracker.load_config(crew_type)
            app_ctx.crew_type = crew_type

        sent = await app_ctx.channel.send(
            build_start_analysis_frame(topic, app_ctx.crew_type)
        )
        if not sent:
            return {"success": False, "error": "サーバーに接続されていないため開始できません"}

        app_ctx.tracker.reset_progress()
        app_ctx.transcript.start_analysis()
        app_ctx.transcript.append(topic, MessageRole.USER)
        app_ctx.transcript.reset_waiting_for_input()
        return {
            "success": True,
            "crew_type": app_ctx.crew_type,
            "message": f"分析を開始しました: {topic}",
        }

    @mcp.tool()
    async def send_user_input(content: str, ctx: Context = None) -> dict[str, Any]:
        """利用者の入力を送信する。

        Args:
            content: 入力内容（入力待ちの質問への回答など）

        Returns:
            送信結果（success, message_id, status または error）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        if not content.strip():
            return {"success": False, "error": "入力内容が空です"}

        transcript = app_ctx.transcript
        message = transcript.add_user_message(content)
        sent = await app_ctx.channel.send(build_user_input_frame(content))
        status = DeliveryStatus.SENT if sent else DeliveryStatus.ERROR
        if message is not None:
            transcript.mark_user_status(message.id, status)
        if sent:
            transcript.reset_waiting_for_input()

        return {
            "success": sent,
            "message_id": message.id if message else None,
            "status": status.value,
            **({} if sent else {"error": "サーバーに接続されていません"}),
        }

    @mcp.tool()
    async def save_custom_config(ctx: Context = None) -> dict[str, Any]:
        """現在のエージェント・タスク構成をサーバーへ送信する。

        Returns:
            送信結果（success, sent または error）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        results: list[bool] = []

        async def _transmit(frame: dict[str, Any]) -> bool:
            sent = await app_ctx.channel.send(frame)
            results.append(sent)
            return sent

        available = await app_ctx.tracker.save_custom_config(_transmit)
        if not available:
            return {"success": False, "error": "送信できる crew 構成がありません"}
        sent = bool(results and results[-1])
        return {
            "success": sent,
            "sent": sent,
            **({} if sent else {"error": "サーバーに接続されていません"}),
        }

    @mcp.tool()
    async def reload_crew_config(
        crew_type: str | None = None, ctx: Context = None
    ) -> dict[str, Any]:
        """crew 構成を再読み込みする。

        取得に失敗した場合は組み込みの既定構成に切り替わる。

        Args:
            crew_type: crew の種類（省略時は現在の種類）

        Returns:
            読み込み結果（success, source, crew_type, task_count, agent_count）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        crew_type = crew_type or app_ctx.crew_type
        loaded = await app_ctx.tracker.load_config(crew_type)
        app_ctx.crew_type = crew_type
        tracker = app_ctx.tracker
        return {
            "success": True,
            "source": "remote" if loaded else "default",
            "crew_type": crew_type,
            "task_count": len(tracker.tasks),
            "agent_count": len(tracker.agents),
        }

    @mcp.tool()
    async def reset_progress(ctx: Context = None) -> dict[str, Any]:
        """全タスクを未着手に戻す。

        Returns:
            リセット結果（success, progress）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        app_ctx.tracker.reset_progress()
        return {"success": True, "progress": app_ctx.tracker.task_progress}

    @mcp.tool()
    async def set_task_enabled(
        task_id: str, enabled: bool, ctx: Context = None
    ) -> dict[str, Any]:
        """タスクの有効/無効を切り替える。

        Args:
            task_id: タスクID
            enabled: 有効にする場合 True

        Returns:
            更新結果（success, task_id, enabled, progress または error）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        if not app_ctx.tracker.set_task_enabled(task_id, enabled):
            return {"success": False, "error": f"タスクが見つかりません: {task_id}"}
        return {
            "success": True,
            "task_id": task_id,
            "enabled": enabled,
            "progress": app_ctx.tracker.task_progress,
        }

    @mcp.tool()
    async def set_agent_enabled(role: str, enabled: bool, ctx: Context = None) -> dict[str, Any]:
        """エージェントの有効/無効を切り替える。

        Args:
            role: エージェントの役割名
            enabled: 有効にする場合 True

        Returns:
            更新結果（success, role, enabled または error）
        """
        app_ctx: AppContext = ctx.request_context.lifespan_context
        if not app_ctx.tracker.set_agent_enabled(role, enabled):
            return {"success": False, "error": f"エージェントが見つかりません: {role}"}
        return {"success": True, "role": role, "enabled": enabled}
