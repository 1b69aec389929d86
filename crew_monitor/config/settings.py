"""設定管理モジュール。"""

import os
from pathlib import Path

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


def resolve_project_env_file(project_root: str | os.PathLike[str] | None) -> str | None:
    """指定した project_root から .env ファイルを解決する。

    Args:
        project_root: プロジェクトルートパス

    Returns:
        .env ファイルのパス（存在する場合）、または None
    """
    if not project_root:
        return None

    env_file = Path(project_root) / ".crew-monitor" / ".env"
    if env_file.exists():
        return str(env_file)
    return None


def get_project_env_file() -> str | None:
    """プロジェクト別 .env ファイルのパスを取得。

    CREW_MONITOR_PROJECT_ROOT 環境変数が設定されている場合、
    {project_root}/.crew-monitor/.env を返す。

    Returns:
        .env ファイルのパス（存在する場合）、または None
    """
    return resolve_project_env_file(os.getenv("CREW_MONITOR_PROJECT_ROOT"))


class Settings(BaseSettings):
    """crew モニターの設定。

    環境変数で上書き可能。プレフィックスは CREW_MONITOR_。
    例: CREW_MONITOR_WS_URL=ws://localhost:8003/ws

    優先順位:
    1. 環境変数（最優先）
    2. プロジェクト別 .env ファイル（{project}/.crew-monitor/.env）
    3. デフォルト値
    """

    model_config = ConfigDict(
        env_prefix="CREW_MONITOR_",
        env_file=get_project_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 接続先設定
    ws_url: str = "ws://localhost:8003/ws"
    """crew サーバーの WebSocket エンドポイント"""

    api_base_url: str = "http://localhost:8003"
    """crew 設定サービスの HTTP ベース URL"""

    crew_type: str = "product_ideation"
    """起動時に読み込む crew の種類"""

    # 接続維持設定
    reconnect_delay_seconds: float = Field(
        default=5.0,
        gt=0,
        description="切断後に再接続を試みるまでの固定待機秒数",
    )
    """再接続の固定待機秒数（バックオフなし、回数上限なし）"""

    heartbeat_interval_seconds: float = Field(
        default=30.0,
        ge=0,
        description="heartbeat フレームの送信間隔（秒）。0 で無効",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="crew 設定取得時の HTTP タイムアウト（秒）",
    )

    # 表示設定
    task_name_max_length: int = Field(
        default=20,
        ge=4,
        description="タスク説明から生成するタスク名の最大文字数",
    )

    agent_highlight_seconds: float = Field(
        default=3.0,
        ge=0,
        description="アクティブエージェント切り替え時のハイライト表示秒数",
    )

    max_notices: int = Field(
        default=50,
        ge=1,
        description="保持する通知の最大件数",
    )

    transcript_default_limit: int = Field(
        default=50,
        ge=1,
        description="get_transcript が返すメッセージのデフォルト件数",
    )

    @field_validator("ws_url")
    @classmethod
    def validate_ws_url(cls, value: str) -> str:
        """WebSocket URL のスキームを検証する。"""
        candidate = value.strip()
        if not candidate.startswith(("ws://", "wss://")):
            raise ValueError(
                f"CREW_MONITOR_WS_URL は ws:// または wss:// で始めてください: {value}"
            )
        return candidate

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, value: str) -> str:
        """HTTP ベース URL の末尾スラッシュを除去する。"""
        candidate = value.strip().rstrip("/")
        if not candidate.startswith(("http://", "https://")):
            raise ValueError(
                f"CREW_MONITOR_API_BASE_URL は http:// または https:// で始めてください: {value}"
            )
        return candidate

    def crew_info_url(self, crew_type: str) -> str:
        """crew-info エンドポイントの URL を返す。"""
        return f"{self.api_base_url}/api/crew-info/{crew_type}"

    def crew_types_url(self) -> str:
        """crew-types エンドポイントの URL を返す。"""
        return f"{self.api_base_url}/api/crew-types"


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """キャッシュ済みの Settings を取得する。

    初回呼び出し時点の CREW_MONITOR_PROJECT_ROOT からプロジェクト別 .env を解決する。

    Returns:
        初回呼び出し時に生成した Settings インスタンス
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = load_settings_for_project(os.getenv("CREW_MONITOR_PROJECT_ROOT"))
    return _settings_instance


def load_settings_for_project(project_root: str | os.PathLike[str] | None) -> Settings:
    """指定 project_root の .env を優先して Settings を生成する。

    優先順位:
    1. プロセス環境変数 CREW_MONITOR_*
    2. {project_root}/.crew-monitor/.env
    3. デフォルト値

    Args:
        project_root: プロジェクトルートパス

    Returns:
        読み込み済み Settings インスタンス
    """
    env_file = resolve_project_env_file(project_root)
    if env_file:
        return Settings(_env_file=env_file)
    # model_config 側の env_file を使わず、環境変数 + デフォルトのみで構築
    return Settings(_env_file=None)
