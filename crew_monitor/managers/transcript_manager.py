"""会話トランスクリプト管理モジュール。

ストリーミングされるテキストを 1 件ずつのメッセージに集約する。
最後のメッセージだけをその場で更新し、区切りとなるマーカーを受信したら
直前のメッセージを確定させて新しいメッセージを開始する。
"""

import logging

from crew_monitor.config.inference_rules import has_final_marker, has_preservation_trigger
from crew_monitor.managers.control_codes import render_control_codes
from crew_monitor.models.frame import (
    ChatFrame,
    InboundFrame,
    RequestInputFrame,
    ResultFrame,
    SystemFrame,
    UpdateFrame,
    UserInputFrame,
)
from crew_monitor.models.message import ChatMessage, DeliveryStatus, MessageRole

logger = logging.getLogger(__name__)


class TranscriptManager:
    """会話トランスクリプトを管理するクラス。"""

    def __init__(self) -> None:
        """TranscriptManagerを初期化する。"""
        self.messages: list[ChatMessage] = []
        self.analysis_in_progress = False
        self.is_waiting_for_input = False
        self.current_question = ""
        self.current_options: list[str] = []

    @property
    def last_message(self) -> ChatMessage | None:
        """最後のメッセージ。"""
        return self.messages[-1] if self.messages else None

    def _is_thinking(self, role: MessageRole) -> bool:
        return role == MessageRole.AGENT and self.analysis_in_progress

    def append(self, text: str, role: MessageRole | str) -> ChatMessage | None:
        """メッセージを追加する。

        空文字列、制御コード除去後に空になるテキスト、および未確定の最終メッセージと
        内容・役割が同一のテキストは追加しない。

        Args:
            text: 受信したテキスト
            role: 発信者種別

        Returns:
            追加されたメッセージ、または追加しなかった場合は None
        """
        if not text or not text.strip():
            return None

        role = MessageRole(role)
        content = render_control_codes(text)
        if not content.strip():
            return None

        last = self.last_message
        if (
            last is not None
            and not last.preserved
            and last.content == content
            and last.role == role
        ):
            logger.debug("重複メッセージのため追加をスキップしました")
            return None

        # 思考中の仮メッセージを取り除く
        if role == MessageRole.AGENT:
            self.messages = [m for m in self.messages if not m.thinking]

        message = ChatMessage(
            content=content,
            role=role,
            status=DeliveryStatus.SENT if role == MessageRole.USER else None,
            thinking=self._is_thinking(role),
        )
        self.messages.append(message)
        return message

    def update_last(self, text: str) -> ChatMessage | None:
        """最後のメッセージをストリーミング内容で更新する。

        - メッセージがない、または最後のメッセージが確定済みなら新規追加
        - 確定トリガーを含む場合は直前のメッセージを確定させて新規追加
        - それ以外は最後のメッセージの内容を置き換える

        Args:
            text: 受信したテキスト

        Returns:
            更新または追加されたメッセージ（何もしなかった場合は None）
        """
        if not text or not text.strip():
            return None

        content = render_control_codes(text)
        if not content.strip():
            return None

        last = self.last_message
        if last is None or last.preserved:
            return self.append(text, MessageRole.AGENT)

        if has_preservation_trigger(text):
            last.freeze()
            return self.append(text, MessageRole.AGENT)

        last.content = content
        last.thinking = self._is_thinking(last.role)
        return last

    def add_user_message(self, text: str) -> ChatMessage | None:
        """利用者が送信するメッセージを送信中状態で追加する。"""
        message = self.append(text, MessageRole.USER)
        if message is not None:
            message.status = DeliveryStatus.SENDING
        return message

    def mark_user_status(self, message_id: str, status: DeliveryStatus) -> bool:
        """ユーザーメッセージの送信状態を更新する。

        Returns:
            対象メッセージが見つかった場合 True
        """
        for message in reversed(self.messages):
            if message.id == message_id and message.role == MessageRole.USER:
                message.status = status
                return True
        return False

    def set_waiting_for_input(self, question: str, options: list[str] | None = None) -> None:
        """入力待ち状態にし、質問をシステムメッセージとして表示する。

        直前のメッセージが同じ質問で未確定の場合は追加しない。
        """
        self.is_waiting_for_input = True
        self.current_question = question
        self.current_options = list(options or [])

        clean_question = render_control_codes(question)
        last = self.last_message
        if last is None or last.content != clean_question or last.preserved:
            self.append(question, MessageRole.SYSTEM)

    def reset_waiting_for_input(self) -> None:
        """入力待ち状態を解除する。"""
        self.is_waiting_for_input = False
        self.current_question = ""
        self.current_options = []

    def start_analysis(self) -> None:
        """分析開始状態にする。"""
        self.analysis_in_progress = True

    def finish_analysis(self) -> None:
        """分析終了状態にし、思考中フラグを全て解除する。"""
        self.analysis_in_progress = False
        for message in self.messages:
            message.thinking = False

    def handle_frame(self, frame: InboundFrame) -> None:
        """受信フレームをトランスクリプトに反映する。"""
        if isinstance(frame, (ChatFrame, UpdateFrame)):
            self.update_last(frame.text)
        elif isinstance(frame, ResultFrame):
            self.append(frame.text, MessageRole.AGENT)
            if has_final_marker(frame.text):
                self.finish_analysis()
        elif isinstance(frame, SystemFrame):
            self.append(frame.text, MessageRole.SYSTEM)
        elif isinstance(frame, RequestInputFrame):
            self.set_waiting_for_input(frame.question, frame.options)
        elif isinstance(frame, UserInputFrame):
            self.append(frame.text, MessageRole.USER)

    def snapshot(self, limit: int | None = None) -> list[dict]:
        """メッセージを JSON 互換の辞書リストで返す。"""
        messages = self.messages if limit is None else self.messages[-limit:]
        return [m.model_dump(mode="json") for m in messages]
