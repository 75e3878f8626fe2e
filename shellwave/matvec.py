"""疎行列ベクトル積と質量対角の抽出.

陽解法の1ステップで唯一の行列演算は K·u であり、これがステップ内の支配的コストになる。
RowPartitionedMatVec は CSR 行列を行ブロックに分割し、スレッドプールで
各ブロックの積を共有出力バッファの互いに素な区間へ直接書き込む。
各ワーカーは排他的な区間に書き込むためロック不要。

- _PARALLEL_MIN_ROWS 未満の行数は逐次実行
- n_jobs=-1 で全CPUコアを使用
- 疎行列以外の演算子（密行列・行列フリー演算子）は SequentialMatVec で K @ x を評価
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import scipy.sparse as sp

from shellwave.core.protocols import OperatorProtocol

# 並列化の最小行数閾値（これ未満は逐次実行）
_PARALLEL_MIN_ROWS = 20000


def _resolve_n_jobs(n_jobs: int) -> int:
    """n_jobs の解決（-1 = 全CPUコア、1未満は1）."""
    if n_jobs == -1:
        n_jobs = os.cpu_count() or 1
    if n_jobs < 1:
        n_jobs = 1
    return n_jobs


def _row_bounds(K: sp.csr_matrix, n_blocks: int) -> list[tuple[int, int]]:
    """非零数がほぼ均等になる行ブロック境界を返す."""
    n = K.shape[0]
    if n_blocks <= 1 or K.nnz == 0:
        return [(0, n)]
    targets = np.linspace(0, K.nnz, n_blocks + 1)[1:-1]
    cuts = np.searchsorted(K.indptr, targets, side="left")
    edges = np.unique(np.concatenate(([0], cuts, [n])))
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:], strict=True) if b > a]


class RowPartitionedMatVec:
    """行分割・スレッド並列の CSR 行列ベクトル積.

    Args:
        K: (n, n) 疎行列（CSR に変換して保持）
        n_jobs: ワーカー数。1=逐次、-1=全CPUコア使用
        min_rows: 並列化する最小行数

    Example:
        >>> with RowPartitionedMatVec(K, n_jobs=4) as matvec:
        ...     f_int = matvec(u)
    """

    def __init__(
        self,
        K: sp.spmatrix | np.ndarray,
        n_jobs: int = 1,
        *,
        min_rows: int = _PARALLEL_MIN_ROWS,
    ) -> None:
        self.K = sp.csr_matrix(K)
        if self.K.shape[0] != self.K.shape[1]:
            raise ValueError(f"K は正方行列: {self.K.shape}")
        self.n_jobs = _resolve_n_jobs(n_jobs)
        self.parallel = self.n_jobs >= 2 and self.K.shape[0] >= min_rows

        self._blocks: list[tuple[int, int, sp.csr_matrix]] = []
        self._pool: ThreadPoolExecutor | None = None
        if self.parallel:
            for start, end in _row_bounds(self.K, self.n_jobs):
                self._blocks.append((start, end, self.K[start:end]))
            self._pool = ThreadPoolExecutor(max_workers=self.n_jobs)

    @property
    def shape(self) -> tuple[int, int]:
        return self.K.shape

    def __call__(self, x: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
        """y = K·x を計算する.

        Args:
            x: (n,) 入力ベクトル
            out: (n,) 出力バッファ（None なら新規確保）

        Returns:
            y: (n,) 積ベクトル（out を指定した場合は out）
        """
        if out is None:
            out = np.empty(self.K.shape[0], dtype=np.result_type(self.K.dtype, x.dtype))

        if self._pool is None:
            out[:] = self.K @ x
            return out

        def _work(block: tuple[int, int, sp.csr_matrix]) -> None:
            start, end, K_blk = block
            out[start:end] = K_blk @ x

        # list() で全ワーカーの完了を待ち、例外があれば再送出する
        list(self._pool.map(_work, self._blocks))
        return out

    def close(self) -> None:
        """スレッドプールを解放する."""
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None
            self._blocks = []
            self.parallel = False

    def __enter__(self) -> RowPartitionedMatVec:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class SequentialMatVec:
    """任意の演算子に対する逐次の K·x（`K @ x` をそのまま評価）.

    密行列や行列フリー演算子（scipy.sparse.linalg.LinearOperator 等）を
    変換せずに保持する。

    Args:
        K: (n, n) の `@` をサポートする演算子
    """

    parallel = False

    def __init__(self, K: OperatorProtocol | np.ndarray) -> None:
        shape = tuple(K.shape)
        if len(shape) != 2 or shape[0] != shape[1]:
            raise ValueError(f"K は正方行列: {shape}")
        self.K = K
        self._shape = shape

    @property
    def shape(self) -> tuple[int, int]:
        return self._shape

    def __call__(self, x: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
        if out is None:
            out = np.empty(self._shape[0], dtype=float)
        out[:] = self.K @ x
        return out

    def close(self) -> None:
        pass

    def __enter__(self) -> SequentialMatVec:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def make_matvec(
    K: OperatorProtocol | np.ndarray, n_jobs: int = 1
) -> RowPartitionedMatVec | SequentialMatVec:
    """推定器・積分器が共通で使う K·x 演算子を構築する.

    scipy.sparse 行列は行分割（n_jobs=1 なら逐次）、それ以外の演算子は
    `K @ x` を逐次に評価する。
    """
    if sp.issparse(K):
        return RowPartitionedMatVec(K, n_jobs=n_jobs)
    return SequentialMatVec(K)


def is_diagonal_vector(M: object) -> bool:
    """M が集中質量の対角ベクトル（1次元配列）として与えられているか."""
    shape = getattr(M, "shape", None)
    if shape is None:
        return np.ndim(M) == 1
    return len(shape) == 1


def mass_diagonal(M: OperatorProtocol | np.ndarray) -> np.ndarray:
    """質量行列の対角成分を取り出し、正値であることを検証する.

    集中質量（対角）行列を想定する。1次元配列はそのまま対角成分とみなす。
    diagonal() を持つ演算子（疎行列・行列フリー演算子）からはそれで取り出す。

    Args:
        M: (n, n) 質量行列（疎 or 密 or 演算子）、または (n,) 対角成分

    Returns:
        m: (n,) 対角成分（float64 のコピー）

    Raises:
        ValueError: 正方でない、または非正・非有限の対角成分がある場合
    """
    if not isinstance(M, np.ndarray) and hasattr(M, "diagonal"):
        shape = tuple(M.shape)
        if len(shape) != 2 or shape[0] != shape[1]:
            raise ValueError(f"M は正方行列: {shape}")
        m = np.array(M.diagonal(), dtype=float).ravel()
        if m.shape != (shape[0],):
            raise ValueError(f"M.diagonal() の長さ {m.shape} が M の形状 {shape} と一致しない")
    else:
        arr = np.asarray(M, dtype=float)
        if arr.ndim == 1:
            m = arr.copy()
        elif arr.ndim == 2 and arr.shape[0] == arr.shape[1]:
            m = np.diag(arr).copy()
        else:
            raise ValueError(f"M は正方行列または対角ベクトル: shape={arr.shape}")

    bad = ~np.isfinite(m) | (m <= 0.0)
    if np.any(bad):
        idx = np.flatnonzero(bad)
        raise ValueError(f"質量対角成分は正値: 不正な DOF {idx[:10].tolist()} (計 {len(idx)} 個)")
    return m
