"""マルチエージェント分析パイプライン（crew）のライブモニター。"""

__version__ = "0.1.0"
