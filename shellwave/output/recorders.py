"""時間積分オブザーバー（記録器）.

積分器は各ステップ後に observer(step, u, v, t) を呼ぶ。u, v は読み取り専用ビュー
なので、記録器は必要な部分だけを取り出すかコピーして保持する。

  PointHistoryRecorder: 注目 DOF の時系列
  SnapshotRecorder:     stride ステップごとの全自由度スナップショット
  EnergyRecorder:       運動エネルギー・ひずみエネルギー
  TimeHistoryRecorder:  全ステップの全状態（小規模問題・検証用）
  ObserverChain:        複数オブザーバーへの分配
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from shellwave.core.protocols import ObserverProtocol, OperatorProtocol
from shellwave.matvec import is_diagonal_vector
from shellwave.output.request import FieldOutputRequest, HistoryOutputRequest


class PointHistoryRecorder:
    """注目 DOF の時系列を記録する.

    DOF インデックスは ndof を与えれば構築時に、与えなければ最初の
    呼び出し時に状態ベクトル長で検証する。

    Args:
        request: HistoryOutputRequest
        ndof: 全自由度数（None = 最初の呼び出しで確認）

    Attributes:
        times: 記録時刻のリスト
        history: {変数名: {点名: 値のリスト}}
    """

    def __init__(self, request: HistoryOutputRequest, ndof: int | None = None) -> None:
        self.request = request
        self._names = list(request.points)
        self._dofs = np.array([request.points[k] for k in self._names], dtype=int)
        if ndof is not None:
            self._check_dofs(ndof)
        self.times: list[float] = []
        self._values: dict[str, list[np.ndarray]] = {var: [] for var in request.variables}

    def _check_dofs(self, ndof: int) -> None:
        over = {
            name: int(dof)
            for name, dof in zip(self._names, self._dofs, strict=True)
            if dof >= ndof
        }
        if over:
            raise ValueError(f"DOF インデックスが範囲外: {over}, ndof={ndof}")

    def __call__(self, step: int, u: np.ndarray, v: np.ndarray, t: float) -> None:
        if not self.times:
            self._check_dofs(u.shape[0])
        self.times.append(t)
        for var, buf in self._values.items():
            src = u if var == "U" else v
            buf.append(src[self._dofs].copy())

    def time_array(self) -> np.ndarray:
        return np.asarray(self.times, dtype=float)

    def series(self, name: str, variable: str = "U") -> np.ndarray:
        """注目点 name の変数 variable の時系列 (n_records,) を返す."""
        if variable not in self._values:
            raise KeyError(f"変数 {variable} は記録対象外: {list(self._values)}")
        col = self._names.index(name)
        rows = self._values[variable]
        if not rows:
            return np.zeros(0, dtype=float)
        return np.array([r[col] for r in rows], dtype=float)

    @property
    def history(self) -> dict[str, dict[str, np.ndarray]]:
        return {
            var: {name: self.series(name, var) for name in self._names} for var in self._values
        }


@dataclass
class Snapshot:
    """全自由度スナップショット.

    Attributes:
        step: ステップ番号
        time: 時刻 [s]
        displacement: (n,) 変位（記録対象外なら None）
        velocity: (n,) 速度（記録対象外なら None）
    """

    step: int
    time: float
    displacement: np.ndarray | None = None
    velocity: np.ndarray | None = None


class SnapshotRecorder:
    """stride ステップごとに全状態のコピーを記録する."""

    def __init__(self, request: FieldOutputRequest) -> None:
        self.request = request
        self.snapshots: list[Snapshot] = []

    def __call__(self, step: int, u: np.ndarray, v: np.ndarray, t: float) -> None:
        if step % self.request.stride != 0:
            return
        variables = self.request.variables
        self.snapshots.append(
            Snapshot(
                step=step,
                time=t,
                displacement=u.copy() if "U" in variables else None,
                velocity=v.copy() if "V" in variables else None,
            )
        )

    @property
    def times(self) -> np.ndarray:
        return np.array([s.time for s in self.snapshots], dtype=float)


class EnergyRecorder:
    """運動エネルギー ½vᵀMv とひずみエネルギー ½uᵀKu を毎ステップ記録する.

    Args:
        M: 集中質量行列、または (n,) 対角成分
        K: 剛性行列
    """

    def __init__(
        self, M: OperatorProtocol | np.ndarray, K: OperatorProtocol | np.ndarray
    ) -> None:
        if is_diagonal_vector(M):
            m = np.asarray(M, dtype=float)
            self._mass = lambda v: m * v
        else:
            self._mass = lambda v: M @ v
        self.K = K
        self.times: list[float] = []
        self.kinetic: list[float] = []
        self.strain: list[float] = []

    def __call__(self, step: int, u: np.ndarray, v: np.ndarray, t: float) -> None:
        self.times.append(t)
        self.kinetic.append(0.5 * float(v @ self._mass(v)))
        self.strain.append(0.5 * float(u @ (self.K @ u)))

    @property
    def total(self) -> np.ndarray:
        """全力学的エネルギー（運動 + ひずみ）."""
        return np.asarray(self.kinetic) + np.asarray(self.strain)


@dataclass
class TimeHistoryRecorder:
    """全ステップの時刻・変位・速度を記録する（検証用）.

    Attributes:
        steps: ステップ番号
        times: 時刻
        displacements: 各ステップの変位コピー
        velocities: 各ステップの速度コピー
    """

    steps: list[int] = field(default_factory=list)
    times: list[float] = field(default_factory=list)
    displacements: list[np.ndarray] = field(default_factory=list)
    velocities: list[np.ndarray] = field(default_factory=list)

    def __call__(self, step: int, u: np.ndarray, v: np.ndarray, t: float) -> None:
        self.steps.append(step)
        self.times.append(t)
        self.displacements.append(u.copy())
        self.velocities.append(v.copy())

    @property
    def time(self) -> np.ndarray:
        return np.asarray(self.times, dtype=float)

    @property
    def displacement(self) -> np.ndarray:
        """(n_records, n) 変位履歴."""
        return np.array(self.displacements, dtype=float)

    @property
    def velocity(self) -> np.ndarray:
        """(n_records, n) 速度履歴."""
        return np.array(self.velocities, dtype=float)


class ObserverChain:
    """複数のオブザーバーに順番に通知する."""

    def __init__(self, *observers: ObserverProtocol) -> None:
        self.observers = list(observers)

    def __call__(self, step: int, u: np.ndarray, v: np.ndarray, t: float) -> None:
        for obs in self.observers:
            obs(step, u, v, t)


__all__ = [
    "PointHistoryRecorder",
    "Snapshot",
    "SnapshotRecorder",
    "EnergyRecorder",
    "TimeHistoryRecorder",
    "ObserverChain",
]
