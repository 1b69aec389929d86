"""組み込みの crew 既定構成。

設定サービスから構成を取得できない場合に使用する。
"""

from crew_monitor.models.crew import Agent, Task

# 設定サービス由来のタスクへ位置順に割り当てる ID とアイコン
DEFAULT_TASK_IDS: list[str] = ["ideation", "tiktok", "market", "tech", "refinement"]
DEFAULT_TASK_ICONS: list[str] = ["💡", "📱", "📊", "⚙️", "✨"]

PRODUCT_MANAGER = "产品经理"
PLATFORM_ANALYST = "TikTok平台分析师"
MARKET_RESEARCHER = "市场研究员"
TECH_EXPERT = "技术专家"


def default_tasks() -> list[Task]:
    """既定の 5 ステージのタスク一覧を生成する。

    呼び出しごとに新しいインスタンスを返す。
    """
    return [
        Task(
            id="ideation",
            name="产品创意生成",
            icon="💡",
            description="围绕目标用户构思产品创意，提炼产品概念与创新点",
            expected_output="3-5 个产品创意及其核心价值",
            agent_role=PRODUCT_MANAGER,
        ),
        Task(
            id="tiktok",
            name="TikTok平台分析",
            icon="📱",
            description="分析 TikTok 平台特点、用户群体与内容趋势",
            expected_output="平台用户画像与机会点",
            agent_role=PLATFORM_ANALYST,
        ),
        Task(
            id="market",
            name="市场研究",
            icon="📊",
            description="开展市场研究，评估市场规模、趋势与竞争对手",
            expected_output="市场分析与竞品分析报告",
            agent_role=MARKET_RESEARCHER,
        ),
        Task(
            id="tech",
            name="技术可行性评估",
            icon="⚙️",
            description="评估技术可行性、技术架构与开发难度",
            expected_output="技术方案与风险评估",
            agent_role=TECH_EXPERT,
        ),
        Task(
            id="refinement",
            name="产品方案完善",
            icon="✨",
            description="整合各方结论，完善最终产品方案与功能列表",
            expected_output="最终产品方案",
            agent_role=PRODUCT_MANAGER,
        ),
    ]


def default_agents() -> list[Agent]:
    """既定の 4 ロールのエージェント一覧を生成する。"""
    return [
        Agent(
            role=PRODUCT_MANAGER,
            goal="定义有竞争力的产品方案",
            backstory="资深产品经理，擅长从用户需求中提炼产品概念",
        ),
        Agent(
            role=PLATFORM_ANALYST,
            goal="洞察短视频平台的用户与内容机会",
            backstory="长期研究 TikTok 生态的平台分析师",
        ),
        Agent(
            role=MARKET_RESEARCHER,
            goal="给出可靠的市场规模与竞争格局判断",
            backstory="熟悉消费电子与内容市场的研究员",
        ),
        Agent(
            role=TECH_EXPERT,
            goal="评估方案的技术可行性与实现成本",
            backstory="全栈架构师，负责技术选型与风险评估",
        ),
    ]
