"""行分割スレッド並列の疎行列ベクトル積と質量対角抽出のテスト."""

from __future__ import annotations

import os

import numpy as np
import pytest
import scipy.sparse as sp
from scipy.sparse.linalg import aslinearoperator

from shellwave.core import OperatorProtocol
from shellwave.matvec import (
    RowPartitionedMatVec,
    SequentialMatVec,
    _resolve_n_jobs,
    _row_bounds,
    is_diagonal_vector,
    make_matvec,
    mass_diagonal,
)


def _random_sparse(n: int, density: float = 0.05, seed: int = 0) -> sp.csr_matrix:
    A = sp.random(n, n, density=density, format="csr", random_state=seed)
    return (A + A.T + sp.identity(n)).tocsr()


class TestRowPartitionedMatVec:
    """逐次・並列で K @ x と一致する."""

    def test_sequential_matches_scipy(self):
        K = _random_sparse(100)
        x = np.random.default_rng(0).standard_normal(100)
        with RowPartitionedMatVec(K) as matvec:
            assert not matvec.parallel
            np.testing.assert_allclose(matvec(x), K @ x, rtol=1e-14, atol=1e-14)

    @pytest.mark.parametrize("n_jobs", [2, 3, 8])
    def test_parallel_matches_scipy(self, n_jobs):
        K = _random_sparse(300, seed=n_jobs)
        x = np.random.default_rng(1).standard_normal(300)
        with RowPartitionedMatVec(K, n_jobs=n_jobs, min_rows=1) as matvec:
            assert matvec.parallel
            np.testing.assert_allclose(matvec(x), K @ x, rtol=1e-14, atol=1e-14)

    def test_out_buffer_reused(self):
        K = _random_sparse(50)
        x = np.ones(50)
        out = np.empty(50)
        with RowPartitionedMatVec(K, n_jobs=2, min_rows=1) as matvec:
            y = matvec(x, out=out)
        assert y is out
        np.testing.assert_allclose(out, K @ x, rtol=1e-14, atol=1e-14)

    def test_small_problem_runs_sequentially(self):
        """min_rows 未満の行数では並列化しない."""
        matvec = make_matvec(_random_sparse(20), n_jobs=4)
        assert not matvec.parallel
        matvec.close()

    def test_dense_input_evaluated_directly(self):
        K = np.array([[2.0, -1.0], [-1.0, 2.0]])
        with make_matvec(K) as matvec:
            assert isinstance(matvec, SequentialMatVec)
            np.testing.assert_allclose(matvec(np.array([1.0, 1.0])), [1.0, 1.0])
            assert matvec.shape == (2, 2)

    def test_close_is_idempotent(self):
        matvec = RowPartitionedMatVec(_random_sparse(40), n_jobs=2, min_rows=1)
        matvec.close()
        matvec.close()
        assert not matvec.parallel
        # 解放後は逐次で計算できる
        x = np.ones(40)
        np.testing.assert_allclose(matvec(x), matvec.K @ x)

    def test_empty_matrix(self):
        K = sp.csr_matrix((10, 10))
        with RowPartitionedMatVec(K, n_jobs=2, min_rows=1) as matvec:
            np.testing.assert_array_equal(matvec(np.ones(10)), np.zeros(10))

    def test_non_square(self):
        with pytest.raises(ValueError, match="正方"):
            RowPartitionedMatVec(sp.csr_matrix((3, 4)))


class TestRowBounds:
    """行ブロック境界."""

    def test_blocks_cover_all_rows(self):
        K = _random_sparse(101)
        bounds = _row_bounds(K, 4)
        assert bounds[0][0] == 0
        assert bounds[-1][1] == 101
        for (_, end), (start, _) in zip(bounds[:-1], bounds[1:], strict=True):
            assert end == start
        assert all(b > a for a, b in bounds)

    def test_single_block(self):
        K = _random_sparse(10)
        assert _row_bounds(K, 1) == [(0, 10)]

    def test_resolve_n_jobs(self):
        assert _resolve_n_jobs(-1) == (os.cpu_count() or 1)
        assert _resolve_n_jobs(0) == 1
        assert _resolve_n_jobs(3) == 3


class TestMassDiagonal:
    """集中質量の対角抽出と正値チェック."""

    def test_sparse(self):
        m = mass_diagonal(sp.diags([1.0, 2.0, 3.0]))
        np.testing.assert_array_equal(m, [1.0, 2.0, 3.0])

    def test_dense(self):
        np.testing.assert_array_equal(mass_diagonal(np.diag([4.0, 5.0])), [4.0, 5.0])

    def test_vector_is_copied(self):
        src = np.array([1.0, 2.0])
        m = mass_diagonal(src)
        m[0] = 10.0
        assert src[0] == 1.0

    @pytest.mark.parametrize("bad", [0.0, -1.0, np.nan, np.inf])
    def test_invalid_entries(self, bad):
        with pytest.raises(ValueError, match="質量対角成分は正値"):
            mass_diagonal(np.array([1.0, bad, 1.0]))

    def test_non_square(self):
        with pytest.raises(ValueError):
            mass_diagonal(np.ones((2, 3)))
        with pytest.raises(ValueError):
            mass_diagonal(sp.csr_matrix((2, 3)))


class _MatrixFreeOperator:
    """scipy.sparse でも ndarray でもない、shape・@・diagonal() のみの演算子."""

    def __init__(self, A):
        self._A = sp.csr_matrix(A)
        self.shape = self._A.shape

    def __matmul__(self, x):
        return self._A @ x

    def diagonal(self):
        return self._A.diagonal()


class TestGenericOperators:
    """OperatorProtocol に適合する任意の演算子を受け付ける."""

    def test_conforms_to_protocol(self):
        op = _MatrixFreeOperator(sp.identity(3))
        assert isinstance(op, OperatorProtocol)
        assert isinstance(sp.csr_matrix(np.eye(2)), OperatorProtocol)
        assert isinstance(np.eye(2), OperatorProtocol)

    def test_make_matvec_sequential_wrapper(self):
        K = _random_sparse(30)
        x = np.random.default_rng(2).standard_normal(30)
        with make_matvec(_MatrixFreeOperator(K), n_jobs=4) as matvec:
            assert isinstance(matvec, SequentialMatVec)
            assert not matvec.parallel
            assert matvec.shape == (30, 30)
            out = np.empty(30)
            assert matvec(x, out=out) is out
        np.testing.assert_allclose(out, K @ x, rtol=1e-14, atol=1e-14)

    def test_linear_operator(self):
        K = _random_sparse(20)
        x = np.ones(20)
        with make_matvec(aslinearoperator(K)) as matvec:
            np.testing.assert_allclose(matvec(x), K @ x, rtol=1e-14, atol=1e-14)

    def test_sparse_goes_to_row_partitioned(self):
        with make_matvec(_random_sparse(10)) as matvec:
            assert isinstance(matvec, RowPartitionedMatVec)

    def test_sequential_non_square(self):
        with pytest.raises(ValueError, match="正方"):
            SequentialMatVec(_MatrixFreeOperator(sp.csr_matrix((2, 3))))

    def test_mass_diagonal_from_operator(self):
        m = mass_diagonal(_MatrixFreeOperator(sp.diags([1.0, 2.0, 3.0])))
        np.testing.assert_array_equal(m, [1.0, 2.0, 3.0])

    def test_mass_diagonal_operator_validation(self):
        with pytest.raises(ValueError, match="正方"):
            mass_diagonal(_MatrixFreeOperator(sp.csr_matrix((2, 3))))
        with pytest.raises(ValueError, match="質量対角成分は正値"):
            mass_diagonal(_MatrixFreeOperator(sp.diags([1.0, 0.0])))

    def test_is_diagonal_vector(self):
        assert is_diagonal_vector(np.ones(3))
        assert is_diagonal_vector([1.0, 2.0])
        assert not is_diagonal_vector(np.eye(3))
        assert not is_diagonal_vector(sp.identity(3))
        assert not is_diagonal_vector(_MatrixFreeOperator(sp.identity(3)))
