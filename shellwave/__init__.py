"""shellwave - 薄肉シェル構造の衝撃過渡応答のための陽解法コア.

  spectral:  べき乗法による最大固有角振動数推定・安定時間刻み
  dynamics:  質量比例減衰付き中心差分法
  matvec:    行分割スレッド並列の疎行列ベクトル積
  loads:     外力生成（Hann 窓バースト等）
  output:    オブザーバー（記録器）・初期条件
"""

from shellwave.dynamics import (
    CentralDifferenceConfig,
    ExplicitDynamicsIntegrator,
    RayleighDamping,
    UnstableTimeStepError,
    plan_time_steps,
    solve_central_difference,
)
from shellwave.spectral import (
    critical_time_step,
    estimate_max_frequency,
    estimate_spectral_radius,
    estimate_stable_time_step,
    stable_time_step,
)

__version__ = "0.1.0"

__all__ = [
    "estimate_max_frequency",
    "estimate_spectral_radius",
    "estimate_stable_time_step",
    "critical_time_step",
    "stable_time_step",
    "RayleighDamping",
    "CentralDifferenceConfig",
    "ExplicitDynamicsIntegrator",
    "UnstableTimeStepError",
    "plan_time_steps",
    "solve_central_difference",
]
