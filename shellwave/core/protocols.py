"""陽解法コアが外部協調者に要求する抽象インタフェース定義.

Protocol 一覧:
  OperatorProtocol      : 剛性・質量行列（A @ x と diagonal() のみ）
  ForceGeneratorProtocol: 外力生成 (out, t) → out
  ObserverProtocol      : 1ステップ完了ごとの通知 (step, u, v, t)

行列のアセンブリ・DOF番号付けは外部で行われ、コアはこれらの
最小インタフェースを通してのみ利用する。scipy.sparse 行列と
numpy.ndarray はいずれも OperatorProtocol に構造的に適合する。
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class OperatorProtocol(Protocol):
    """疎行列ベクトル積と対角抽出をサポートする正方行列.

    適合例:
      - scipy.sparse.csr_matrix / csr_array / dia_matrix
      - numpy.ndarray (2次元)
    """

    shape: tuple[int, ...]

    def __matmul__(self, x: np.ndarray) -> np.ndarray: ...

    def diagonal(self) -> np.ndarray: ...


@runtime_checkable
class ForceGeneratorProtocol(Protocol):
    """時刻 t の外力ベクトルを出力バッファに書き込む.

    時刻のみの決定的関数であること。構築時に確定した定数以外の
    隠れ状態を持ってはならない。
    """

    def __call__(self, out: np.ndarray, t: float) -> np.ndarray:
        """外力を書き込む.

        Args:
            out: (n,) 出力バッファ（上書きされる）
            t: 時刻 [s]

        Returns:
            out（同じバッファ）
        """
        ...


@runtime_checkable
class ObserverProtocol(Protocol):
    """時間ステップ完了ごとに呼ばれるコールバック.

    step=0（初期状態）から呼ばれる。u, v は読み取り専用ビューで渡されるため、
    保持する場合はコピーすること。
    """

    def __call__(self, step: int, u: np.ndarray, v: np.ndarray, t: float) -> None: ...
