"""shellwave.core - 外部協調者の抽象インタフェース定義・戻り値型.

Protocol:
  OperatorProtocol      : 剛性・質量行列
  ForceGeneratorProtocol: 外力生成コールバック
  ObserverProtocol      : ステップ通知コールバック
"""

from shellwave.core.protocols import (
    ForceGeneratorProtocol,
    ObserverProtocol,
    OperatorProtocol,
)
from shellwave.core.results import ExplicitRunInfo, SpectralEstimate, StepPlan

__all__ = [
    "OperatorProtocol",
    "ForceGeneratorProtocol",
    "ObserverProtocol",
    "SpectralEstimate",
    "StepPlan",
    "ExplicitRunInfo",
]
