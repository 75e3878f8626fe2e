"""陽解法（中心差分法）による過渡応答解析モジュール.

運動方程式: M·ä + C·u̇ + K·u = f(t)

  - M: 集中質量（対角）
  - C = ξ·2·ω_d·M: 質量比例 Rayleigh 減衰（対角成分のみ保持）
  - K: 疎な剛性行列（ステップあたり K·u を1回だけ評価）

行列の分解を一切行わないのが陽解法の特徴で、1ステップのコストは
疎行列ベクトル積1回と O(n) のベクトル演算のみ。ただし条件付き安定であり、
Δt が 2/ω_max を超えると発散する（spectral.stable_time_step を参照）。

速度は旧加速度・新加速度による半ステップ更新の2段階（velocity Verlet 型）:

    u_{n+1} = u_n + Δt·v_n + Δt²/2·a_n
    f̂      = f(t_{n+1}) − K·u_{n+1} − c⊙(v_n + Δt/2·a_n)
    a_{n+1} = f̂ / (m + Δt/2·c)
    v_{n+1} = v_n + Δt/2·(a_n + a_{n+1})
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field

import numpy as np

from shellwave.core.protocols import ForceGeneratorProtocol, ObserverProtocol, OperatorProtocol
from shellwave.core.results import ExplicitRunInfo, StepPlan
from shellwave.matvec import make_matvec, mass_diagonal


class UnstableTimeStepError(RuntimeError):
    """安定性チェック有効時に、状態ベクトルの発散を検出した."""


# ====================================================================
# コンフィグ
# ====================================================================


@dataclass
class RayleighDamping:
    """質量比例 Rayleigh 減衰.

    C = ξ·2·ω_d·M。ω_d は固定の参照角振動数で、解析中に再推定しない。

    Attributes:
        xi: 減衰比 ξ（非負）
        omega_d: 参照角振動数 ω_d [rad/s]（非負）
    """

    xi: float = 0.0
    omega_d: float = 0.0

    def __post_init__(self) -> None:
        if not (self.xi >= 0.0 and math.isfinite(self.xi)):
            raise ValueError(f"xi は非負の有限値: {self.xi}")
        if not (self.omega_d >= 0.0 and math.isfinite(self.omega_d)):
            raise ValueError(f"omega_d は非負の有限値: {self.omega_d}")

    def coefficients(self, m_diag: np.ndarray) -> np.ndarray:
        """減衰行列の対角成分 c = ξ·2·ω_d·m を返す."""
        return (self.xi * 2.0 * self.omega_d) * np.asarray(m_diag, dtype=float)


@dataclass
class CentralDifferenceConfig:
    """中心差分法の設定.

    Attributes:
        t_end: 解析時間 [s]
        dt: 公称時間刻み [s]（plan_time_steps で調整される）
        damping: 質量比例減衰（デフォルト: 非減衰）
        n_jobs: K·u の並列ワーカー数（1=逐次、-1=全コア）
        check_stability: True で発散を検出して UnstableTimeStepError を送出
        growth_limit: 状態ノルムが初期スケールのこの倍数を超えたら発散とみなす
        verbose: 開始・終了時に情報を表示
    """

    t_end: float
    dt: float
    damping: RayleighDamping = field(default_factory=RayleighDamping)
    n_jobs: int = 1
    check_stability: bool = False
    growth_limit: float = 1e12
    verbose: bool = False

    def __post_init__(self) -> None:
        if not (self.dt > 0.0 and math.isfinite(self.dt)):
            raise ValueError(f"dt は正値: {self.dt}")
        if not (self.t_end >= 0.0 and math.isfinite(self.t_end)):
            raise ValueError(f"t_end は非負: {self.t_end}")
        if not self.growth_limit > 1.0:
            raise ValueError(f"growth_limit は1より大: {self.growth_limit}")

    @property
    def plan(self) -> StepPlan:
        """調整後のステップ数と時間刻み."""
        return plan_time_steps(self.t_end, self.dt)


# ====================================================================
# ステップ計画
# ====================================================================


def plan_time_steps(t_end: float, dt: float) -> StepPlan:
    """要求時間と公称時間刻みからステップ数と時間刻みを決める.

    n = round(t_end/dt)。n·dt < t_end のときは dt を t_end/(n+1) に縮める。
    ステップ数 n は変更しない（例: t_end=1.0, dt=0.3 → n=3, dt=0.25）。

    Args:
        t_end: 要求解析時間 [s]（非負）
        dt: 公称時間刻み [s]（正値）

    Returns:
        StepPlan: (n_steps, dt)
    """
    if not (dt > 0.0 and math.isfinite(dt)):
        raise ValueError(f"dt は正値: {dt}")
    if not (t_end >= 0.0 and math.isfinite(t_end)):
        raise ValueError(f"t_end は非負: {t_end}")
    n_steps = int(round(t_end / dt))
    if n_steps * dt < t_end:
        dt = t_end / (n_steps + 1)
    return StepPlan(n_steps=n_steps, dt=dt)


# ====================================================================
# 中心差分法ソルバー
# ====================================================================


def _readonly(a: np.ndarray) -> np.ndarray:
    view = a.view()
    view.flags.writeable = False
    return view


class ExplicitDynamicsIntegrator:
    """質量比例減衰付き中心差分法の時間積分器.

    K, M は検証済みで保持し、run() を何度でも呼べる。入力行列・初期条件は変更しない。

    Args:
        M: (n, n) 集中質量行列、または (n,) 対角成分（全て正値）
        K: (n, n) 疎な剛性行列
        damping: 質量比例減衰（None = 非減衰）
        n_jobs: K·u の並列ワーカー数
    """

    def __init__(
        self,
        M: OperatorProtocol | np.ndarray,
        K: OperatorProtocol | np.ndarray,
        damping: RayleighDamping | None = None,
        *,
        n_jobs: int = 1,
    ) -> None:
        self.mass_diagonal = mass_diagonal(M)
        self.ndof = self.mass_diagonal.shape[0]
        if K.shape != (self.ndof, self.ndof):
            raise ValueError(f"K の形状 {K.shape} が M の自由度数 {self.ndof} と一致しない")
        self.K = K
        self.damping = damping if damping is not None else RayleighDamping()
        self.damping_diagonal = self.damping.coefficients(self.mass_diagonal)
        self.n_jobs = n_jobs

    def _initial_vector(self, x: np.ndarray, name: str) -> np.ndarray:
        arr = np.array(x, dtype=float)
        if arr.shape != (self.ndof,):
            raise ValueError(f"{name} の形状 {arr.shape} が自由度数 ({self.ndof},) と一致しない")
        return arr

    def run(
        self,
        u0: np.ndarray,
        v0: np.ndarray,
        t_end: float,
        dt: float,
        force: ForceGeneratorProtocol,
        observer: ObserverProtocol | None = None,
        *,
        check_stability: bool = False,
        growth_limit: float = 1e12,
        verbose: bool = False,
    ) -> ExplicitRunInfo:
        """中心差分法で t_end まで時間積分する.

        t=0 の初期加速度は a0 = f(0)/(m + Δt/2·c) とし、K·u0 と c·v0 は含めない
        （u0 が無応力状態である前提）。

        Args:
            u0: (n,) 初期変位
            v0: (n,) 初期速度
            t_end: 解析時間 [s]
            dt: 公称時間刻み [s]
            force: 外力生成 (out, t) → out
            observer: 各ステップ後に (step, u, v, t) で呼ばれる（step=0 を含む）
            check_stability: 発散検出の有無
            growth_limit: 発散判定の倍率
            verbose: 情報表示

        Returns:
            ExplicitRunInfo

        Raises:
            UnstableTimeStepError: check_stability=True で発散を検出した場合
        """
        n_steps, dt = plan_time_steps(t_end, dt)
        U = self._initial_vector(u0, "u0")
        V = self._initial_vector(v0, "v0")

        m = self.mass_diagonal
        C = self.damping_diagonal
        invMC = 1.0 / (m + (dt / 2.0) * C)  # 調整後の dt で評価
        dt2_2 = (dt**2) / 2.0
        dt_2 = dt / 2.0

        A = np.empty(self.ndof, dtype=float)
        F = np.zeros(self.ndof, dtype=float)
        E = np.empty(self.ndof, dtype=float)
        U_obs = _readonly(U)
        V_obs = _readonly(V)

        scale = max(float(np.max(np.abs(U), initial=0.0)), float(np.max(np.abs(V), initial=0.0)))
        limit = growth_limit * (scale if scale > 0.0 else 1.0)

        if verbose:
            print(
                f"[central_difference] n={self.ndof}, steps={n_steps}, dt={dt:.3e}, "
                f"t_end={n_steps * dt:.3e}, xi={self.damping.xi}"
            )

        t0 = time.time()
        t = 0.0
        force(F, t)
        np.multiply(invMC, F, out=A)
        if observer is not None:
            observer(0, U_obs, V_obs, t)

        with make_matvec(self.K, self.n_jobs) as matvec:
            for step in range(1, n_steps + 1):
                t = t + dt
                U += dt * V + dt2_2 * A  # 変位更新
                force(F, t)  # 外力
                matvec(U, out=E)  # 弾性復元力
                F -= E + C * (V + dt_2 * A)  # 合力
                V += dt_2 * A  # 速度更新（旧加速度）
                np.multiply(invMC, F, out=A)  # 新加速度
                V += dt_2 * A  # 速度更新（新加速度）

                if check_stability:
                    _check_state(U, V, limit, step, t, dt)
                if observer is not None:
                    observer(step, U_obs, V_obs, t)

        elapsed = time.time() - t0
        stable = bool(np.all(np.isfinite(U)) and np.all(np.isfinite(V)))
        if verbose:
            status = "" if stable else ", NON-FINITE STATE"
            print(f"[central_difference] done: t={t:.3e}, elapsed={elapsed:.3f} s{status}")

        return ExplicitRunInfo(n_steps=n_steps, dt=dt, t_end=t, stable=stable, elapsed=elapsed)


def _check_state(
    U: np.ndarray,
    V: np.ndarray,
    limit: float,
    step: int,
    t: float,
    dt: float,
) -> None:
    """非有限値または異常な増大を検出したら UnstableTimeStepError を送出する."""
    u_max = float(np.max(np.abs(U), initial=0.0))
    v_max = float(np.max(np.abs(V), initial=0.0))
    if not (math.isfinite(u_max) and math.isfinite(v_max)):
        reason = "非有限値"
    elif u_max > limit or v_max > limit:
        reason = f"状態ノルムが限界 {limit:.3e} を超過"
    else:
        return
    raise UnstableTimeStepError(
        f"unstable time step: step {step} (t={t:.6e}) で{reason}。dt={dt:.6e} が安定限界を超えている可能性"
    )


def solve_central_difference(
    M: OperatorProtocol | np.ndarray,
    K: OperatorProtocol | np.ndarray,
    u0: np.ndarray,
    v0: np.ndarray,
    force: ForceGeneratorProtocol,
    observer: ObserverProtocol | None = None,
    *,
    config: CentralDifferenceConfig,
) -> ExplicitRunInfo:
    """質量比例減衰付き中心差分法による線形過渡応答解析.

    Args:
        M: (n, n) 集中質量行列、または (n,) 対角成分
        K: (n, n) 剛性行列（疎 or 密）
        u0: (n,) 初期変位
        v0: (n,) 初期速度
        force: 外力生成 (out, t) → out
        observer: ステップ通知 (step, u, v, t)
        config: CentralDifferenceConfig

    Returns:
        ExplicitRunInfo
    """
    integrator = ExplicitDynamicsIntegrator(M, K, config.damping, n_jobs=config.n_jobs)
    return integrator.run(
        u0,
        v0,
        config.t_end,
        config.dt,
        force,
        observer,
        check_stability=config.check_stability,
        growth_limit=config.growth_limit,
        verbose=config.verbose,
    )
