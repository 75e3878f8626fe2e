"""最大固有角振動数の推定と陽解法の安定時間刻み.

一般化固有値問題 K·φ = λ·M·φ の最大固有値 λ_max を、質量で前処理した
べき乗法で推定する。陽解法（中心差分法）の安定限界は

    Δt_cr = 2 / ω_max,  ω_max = sqrt(λ_max)

であり、推定値はこの上限を与えるためだけに使う。一般の固有値ソルバーではない。

アルゴリズム:
    v ← 一様乱数
    反復 i = 1..max_iterations:
        w = K·v,  w ← w/‖w‖
        v = M⁻¹·w （集中質量の対角逆数）,  v ← v/‖v‖
        i が every の倍数ならレイリー商 ω = sqrt(vᵀKv / vᵀMv) を評価し、
        前回チェックポイントからの相対変化が rtol 未満なら打ち切り
    every = ⌈max_iterations/50⌉ + 1

レイリー商は λ_max の下界なので、推定値は真値を上回らない。
"""

from __future__ import annotations

import math

import numpy as np

from shellwave.core.protocols import OperatorProtocol
from shellwave.core.results import SpectralEstimate
from shellwave.matvec import is_diagonal_vector, make_matvec, mass_diagonal


def checkpoint_interval(max_iterations: int) -> int:
    """レイリー商を評価する反復間隔 ⌈max_iterations/50⌉ + 1."""
    return -(-max_iterations // 50) + 1


def _mass_quadratic(
    M: OperatorProtocol | np.ndarray, m_diag: np.ndarray, v: np.ndarray
) -> float:
    """vᵀMv（M が対角ベクトルで与えられた場合は対角で評価）."""
    if is_diagonal_vector(M):
        return float(v @ (m_diag * v))
    return float(v @ (M @ v))


def estimate_spectral_radius(
    K: OperatorProtocol | np.ndarray,
    M: OperatorProtocol | np.ndarray,
    max_iterations: int = 30,
    rtol: float = 1e-4,
    *,
    rng: np.random.Generator | int | None = None,
    n_jobs: int = 1,
) -> SpectralEstimate:
    """べき乗法で最大固有角振動数 ω_max を推定する（診断情報付き）.

    Args:
        K: (n, n) 対称半正定値の剛性行列
        M: (n, n) 集中質量行列、または (n,) 対角成分（全て正値）
        max_iterations: 最大反復回数。少なくとも1回チェックポイントに達する必要がある
        rtol: チェックポイント間の相対変化による収束判定値
        rng: 初期ベクトル用乱数（None / シード / Generator）
        n_jobs: K·v の並列ワーカー数

    Returns:
        SpectralEstimate: (omega_max, iterations, converged, history)

    Raises:
        ValueError: 形状不一致・非正の質量・反復回数不足・rtol が正でない場合
    """
    if max_iterations < 1:
        raise ValueError(f"max_iterations は1以上: {max_iterations}")
    every = checkpoint_interval(max_iterations)
    if max_iterations < every:
        raise ValueError(
            f"max_iterations ({max_iterations}) ではチェックポイント（{every} 反復ごと）に到達しない"
        )
    if not rtol > 0.0:
        raise ValueError(f"rtol は正値: {rtol}")

    m = mass_diagonal(M)
    n = m.shape[0]
    if K.shape != (n, n):
        raise ValueError(f"K の形状 {K.shape} が M の自由度数 {n} と一致しない")

    gen = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)
    inv_m = 1.0 / m
    v = gen.random(n)
    w = np.empty(n, dtype=float)

    lam = lam_prev = 0.0
    history: list[float] = []
    converged = False
    it = 0

    with make_matvec(K, n_jobs) as matvec:
        for it in range(1, max_iterations + 1):
            matvec(v, out=w)
            wn = np.linalg.norm(w)
            if wn == 0.0:
                # v が K の零空間にある: 剛体モードのみ
                history.append(0.0)
                return SpectralEstimate(0.0, it, True, tuple(history))
            w *= 1.0 / wn
            np.multiply(inv_m, w, out=v)
            v *= 1.0 / np.linalg.norm(v)

            if it % every == 0:
                lam = math.sqrt(max(float(v @ matvec(v)), 0.0) / _mass_quadratic(M, m, v))
                history.append(lam)
                if lam == 0.0 or abs(lam - lam_prev) / lam < rtol:
                    converged = True
                    break
                lam_prev = lam

    return SpectralEstimate(lam, it, converged, tuple(history))


def estimate_max_frequency(
    K: OperatorProtocol | np.ndarray,
    M: OperatorProtocol | np.ndarray,
    max_iterations: int = 30,
    rtol: float = 1e-4,
    *,
    rng: np.random.Generator | int | None = None,
    n_jobs: int = 1,
) -> float:
    """最大固有角振動数 ω_max [rad/s] の推定値を返す.

    estimate_spectral_radius の簡易版。収束しなくてもエラーにはせず、
    最後のチェックポイントでの推定値を返す。
    """
    return estimate_spectral_radius(
        K, M, max_iterations, rtol, rng=rng, n_jobs=n_jobs
    ).omega_max


def critical_time_step(omega_max: float) -> float:
    """中心差分法の安定限界時間刻み Δt_cr = 2/ω_max.

    ω_max = 0（剛体のみ）の場合は inf を返す。
    """
    if omega_max < 0.0 or not math.isfinite(omega_max):
        raise ValueError(f"omega_max は非負の有限値: {omega_max}")
    if omega_max == 0.0:
        return math.inf
    return 2.0 / omega_max


def stable_time_step(
    omega_max: float,
    *,
    safety_factor: float = 0.99,
    omega_floor: float = 0.0,
) -> float:
    """安全係数を掛けた安定時間刻み.

    Δt = safety_factor · 2 / max(ω_max, omega_floor)

    omega_floor は荷重の時間分解能を確保するための下限で、
    例えば搬送波周波数 f_c に対して 20·2π·f_c を与えると
    1周期あたり約30ステップ以上になる。

    Args:
        omega_max: 最大固有角振動数 [rad/s]
        safety_factor: 安全係数 (0, 1]
        omega_floor: 角振動数の下限 [rad/s]

    Returns:
        dt: 時間刻み [s]
    """
    if not (0.0 < safety_factor <= 1.0):
        raise ValueError(f"safety_factor は (0, 1]: {safety_factor}")
    if omega_floor < 0.0:
        raise ValueError(f"omega_floor は非負: {omega_floor}")
    omega = max(omega_max, omega_floor)
    if omega == 0.0:
        raise ValueError("omega_max と omega_floor が共にゼロで時間刻みが決まらない")
    return safety_factor * critical_time_step(omega)


def estimate_stable_time_step(
    K: OperatorProtocol | np.ndarray,
    M: OperatorProtocol | np.ndarray,
    max_iterations: int = 30,
    rtol: float = 1e-4,
    *,
    safety_factor: float = 0.99,
    omega_floor: float = 0.0,
    rng: np.random.Generator | int | None = None,
    n_jobs: int = 1,
) -> float:
    """ω_max の推定から安定時間刻みまでを一括で求める."""
    omega_max = estimate_max_frequency(
        K, M, max_iterations, rtol, rng=rng, n_jobs=n_jobs
    )
    return stable_time_step(omega_max, safety_factor=safety_factor, omega_floor=omega_floor)
