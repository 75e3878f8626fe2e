"""外力生成（ForceGenerator）の実装.

衝撃的な短時間荷重を「空間荷重パターン × 時間エンベロープ」で表す:

    F(t) = e(t) · F_pattern

  - HannBurst: Hann 窓で変調した正弦波バースト（ガイド波励振の定番）
  - ScaledLoad: 固定パターンをスカラーエンベロープで拡大縮小する ForceGenerator
  - ZeroLoad: 外力なし（自由振動）

空間パターンの構築（分布荷重の積分など）はアセンブリ側の責務で、
ここでは節点集中荷重の簡易ヘルパー point_load_vector のみ提供する。
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class HannBurst:
    """Hann 窓変調正弦波バースト.

    e(t) = A · 0.5·(1 − cos 2π f_m t) · sin 2π f_c t   (0 ≤ t ≤ 1/f_m)
    e(t) = 0                                          (それ以外)

    f_m = f_c/4 のとき 4 周期の搬送波を含む窓になる。

    Attributes:
        carrier_frequency: 搬送波周波数 f_c [Hz]
        modulation_frequency: 変調周波数 f_m [Hz]（None = f_c/4）
        amplitude: 振幅 A
    """

    carrier_frequency: float
    modulation_frequency: float | None = None
    amplitude: float = 1.0

    def __post_init__(self) -> None:
        if not self.carrier_frequency > 0.0:
            raise ValueError(f"carrier_frequency は正値: {self.carrier_frequency}")
        if self.modulation_frequency is None:
            object.__setattr__(self, "modulation_frequency", self.carrier_frequency / 4.0)
        elif not self.modulation_frequency > 0.0:
            raise ValueError(f"modulation_frequency は正値: {self.modulation_frequency}")

    @property
    def duration(self) -> float:
        """バースト継続時間 1/f_m [s]."""
        return 1.0 / self.modulation_frequency

    def __call__(self, t: float) -> float:
        if t < 0.0 or t > self.duration:
            return 0.0
        window = 0.5 * (1.0 - math.cos(2.0 * math.pi * self.modulation_frequency * t))
        return self.amplitude * window * math.sin(2.0 * math.pi * self.carrier_frequency * t)


class ScaledLoad:
    """固定荷重パターンをエンベロープで拡大縮小する外力生成.

    パターンは構築時にコピーして保持するため、呼び出し側が後で配列を
    変更しても結果は変わらない。

    Args:
        pattern: (n,) 空間荷重パターン
        envelope: 時刻 → スカラー倍率
    """

    def __init__(self, pattern: np.ndarray, envelope: Callable[[float], float]) -> None:
        self.pattern = np.array(pattern, dtype=float)
        if self.pattern.ndim != 1:
            raise ValueError(f"pattern は1次元: shape={self.pattern.shape}")
        self.pattern.flags.writeable = False
        self.envelope = envelope

    @property
    def ndof(self) -> int:
        return self.pattern.shape[0]

    def __call__(self, out: np.ndarray, t: float) -> np.ndarray:
        np.multiply(self.pattern, self.envelope(t), out=out)
        return out


class ZeroLoad:
    """外力ゼロ."""

    def __call__(self, out: np.ndarray, t: float) -> np.ndarray:
        out.fill(0.0)
        return out


def point_load_vector(
    ndof: int,
    dofs: int | Sequence[int] | np.ndarray,
    values: float | Sequence[float] | np.ndarray,
) -> np.ndarray:
    """節点集中荷重パターンを構築する.

    同じ DOF が複数回指定された場合は加算する。

    Args:
        ndof: 全自由度数
        dofs: 荷重 DOF インデックス
        values: 荷重値（スカラーなら全 DOF に同じ値）

    Returns:
        f: (ndof,) 荷重ベクトル
    """
    idx = np.atleast_1d(np.asarray(dofs, dtype=int))
    if np.any(idx < 0) or np.any(idx >= ndof):
        raise ValueError(f"DOF インデックスが範囲外: {idx.tolist()}, ndof={ndof}")
    vals = np.broadcast_to(np.asarray(values, dtype=float), idx.shape)
    f = np.zeros(ndof, dtype=float)
    np.add.at(f, idx, vals)
    return f


__all__ = [
    "HannBurst",
    "ScaledLoad",
    "ZeroLoad",
    "point_load_vector",
]
