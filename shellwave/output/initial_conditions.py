"""初期条件（Initial Conditions）.

積分器に渡す初期変位 u0・初期速度 v0 を構築する。
DOF 番号付けは外部で確定している前提で、エントリはグローバル DOF
インデックスで指定する。節点番号 + 節点内 DOF での指定は by_node() で変換する。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class InitialConditionType(Enum):
    """初期条件の種別."""

    VELOCITY = "velocity"
    DISPLACEMENT = "displacement"


@dataclass
class InitialConditionEntry:
    """1つの初期条件エントリ.

    Attributes:
        type: 初期条件種別
        dofs: 対象のグローバル DOF インデックス
        value: 初期値
    """

    type: InitialConditionType
    dofs: np.ndarray
    value: float


@dataclass
class InitialConditions:
    """初期条件の集合.

    後から追加したエントリが同じ DOF の値を上書きする。
    """

    entries: list[InitialConditionEntry] = field(default_factory=list)

    def add(
        self,
        type: str,  # noqa: A002
        dofs: int | list[int] | np.ndarray,
        value: float,
    ) -> InitialConditions:
        """初期条件エントリを追加する（メソッドチェーン可）.

        Args:
            type: "velocity" or "displacement"
            dofs: グローバル DOF インデックス
            value: 初期値
        """
        self.entries.append(
            InitialConditionEntry(
                type=InitialConditionType(type),
                dofs=np.atleast_1d(np.asarray(dofs, dtype=int)),
                value=float(value),
            )
        )
        return self

    @staticmethod
    def by_node(
        node_indices: int | list[int] | np.ndarray,
        local_dof: int,
        ndof_per_node: int,
    ) -> np.ndarray:
        """節点番号と節点内 DOF からグローバル DOF を求める（節点順の番号付け）."""
        if not (0 <= local_dof < ndof_per_node):
            raise ValueError(f"local_dof は [0, {ndof_per_node}): {local_dof}")
        nodes = np.atleast_1d(np.asarray(node_indices, dtype=int))
        return nodes * ndof_per_node + local_dof

    def build_initial_vectors(self, ndof: int) -> tuple[np.ndarray, np.ndarray]:
        """初期変位・初期速度ベクトルを構築する.

        Args:
            ndof: 全自由度数

        Returns:
            (u0, v0): それぞれ (ndof,)
        """
        u0 = np.zeros(ndof, dtype=float)
        v0 = np.zeros(ndof, dtype=float)

        for entry in self.entries:
            if np.any(entry.dofs >= ndof) or np.any(entry.dofs < 0):
                raise ValueError(
                    f"DOF インデックスが範囲外: dofs={entry.dofs.tolist()}, ndof={ndof}"
                )
            if entry.type == InitialConditionType.VELOCITY:
                v0[entry.dofs] = entry.value
            else:
                u0[entry.dofs] = entry.value

        return u0, v0


__all__ = [
    "InitialConditionType",
    "InitialConditionEntry",
    "InitialConditions",
]
