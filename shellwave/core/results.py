"""メソッド戻り値の型定義.

公開関数が返すデータ構造を NamedTuple で統一的に定義する。
名前付きアクセスとタプルアンパッキング（n_steps, dt = plan_time_steps(...)）の両方が使える。
"""

from __future__ import annotations

from typing import NamedTuple


class SpectralEstimate(NamedTuple):
    """最大固有角振動数推定の結果.

    Attributes:
        omega_max: 最大固有角振動数の推定値 sqrt(λ_max) [rad/s]
        iterations: 実行した反復回数
        converged: 相対変化が許容値を下回って打ち切られたか
        history: 各チェックポイントでの推定値
    """

    omega_max: float
    iterations: int
    converged: bool
    history: tuple[float, ...]


class StepPlan(NamedTuple):
    """時間ステップ計画.

    Attributes:
        n_steps: ステップ数
        dt: 調整後の時間刻み [s]
    """

    n_steps: int
    dt: float


class ExplicitRunInfo(NamedTuple):
    """陽解法時間積分の実行情報.

    Attributes:
        n_steps: 実行したステップ数
        dt: 実際に使用した時間刻み [s]
        t_end: 最終時刻 [s]
        stable: 最終状態が有限値か
        elapsed: 経過時間 [s]
    """

    n_steps: int
    dt: float
    t_end: float
    stable: bool
    elapsed: float
