"""crew 設定サービスの HTTP クライアント。"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from crew_monitor.config.settings import Settings
from crew_monitor.errors import CrewConfigError
from crew_monitor.models.crew import CrewConfig

logger = logging.getLogger(__name__)


class CrewConfigClient:
    """crew-info / crew-types を取得するクライアント。"""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """CrewConfigClientを初期化する。

        Args:
            settings: 設定
            transport: httpx のトランスポート（テスト時の差し替え用）
        """
        self.settings = settings
        self._transport = transport

    async def _get_json(self, url: str) -> Any:
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.http_timeout_seconds,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise CrewConfigError(f"{url} の取得に失敗しました: {e}") from e
        except ValueError as e:
            raise CrewConfigError(f"{url} の応答が JSON ではありません: {e}") from e

    async def fetch_crew_info(self, crew_type: str) -> CrewConfig:
        """crew 構成を取得する。

        Args:
            crew_type: crew の種類

        Returns:
            取得した CrewConfig

        Raises:
            CrewConfigError: 通信エラー、HTTP エラー、応答形式が不正な場合
        """
        url = self.settings.crew_info_url(crew_type)
        logger.info(f"crew 構成を取得します: {url}")
        data = await self._get_json(url)
        if not isinstance(data, dict):
            raise CrewConfigError(f"crew 構成の形式が不正です: {type(data).__name__}")
        try:
            return CrewConfig.model_validate(data)
        except ValidationError as e:
            raise CrewConfigError(f"crew 構成の検証に失敗しました: {e}") from e

    async def fetch_crew_types(self) -> list[str]:
        """利用可能な crew の種類を取得する。

        Raises:
            CrewConfigError: 取得に失敗した場合
        """
        data = await self._get_json(self.settings.crew_types_url())
        if isinstance(data, dict):
            data = data.get("crew_types", data.get("types"))
        if not isinstance(data, list):
            raise CrewConfigError("crew-types の形式が不正です")
        return [str(item) for item in data]
