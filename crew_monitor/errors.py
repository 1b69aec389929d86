"""crew モニターの例外定義。"""


class CrewMonitorError(Exception):
    """crew モニターの基底例外。"""


class CrewConfigError(CrewMonitorError):
    """crew 設定サービスからの取得に失敗した。"""
