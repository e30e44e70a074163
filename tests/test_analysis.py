"""平衡反復ループ（EquilibriumAnalysis）のテスト.

ループの制御（状態遷移・収束判定・分解の再利用・例外の文脈）は
小さな代数系を返すフェイクバックエンドで検証する。
"""

from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest
import scipy.sparse as sp

from wellbore_cae.analysis import AnalysisState, EquilibriumAnalysis
from wellbore_cae.core.backend import FiniteElementBackend
from wellbore_cae.core.results import AssembledSystem
from wellbore_cae.errors import AssemblyError, FactorizationError
from wellbore_cae.solver import SolverConfig, factorize

K_DENSE = np.array([[4.0, -1.0, 0.0], [-1.0, 4.0, -1.0], [0.0, -1.0, 4.0]])
F_EXT = np.array([1.0, 2.0, 3.0])


class FakeBackend:
    """3 自由度の線形系 K u = f を返すバックエンド.

    Args:
        stiffness_factor: 組み立てる剛性の倍率（1 以外では 1 反復で収束しない）
        matrix_key: AssembledSystem.matrix_key に入れる値
        fail_assemble_at: この呼び出し回数（0始まり）で AssemblyError
        fail_factorize: True なら factorize で FactorizationError
    """

    def __init__(
        self,
        *,
        stiffness_factor: float = 1.0,
        matrix_key=("fake",),
        fail_assemble_at: int | None = None,
        fail_factorize: bool = False,
    ) -> None:
        self.K = sp.csr_matrix(K_DENSE)
        self.stiffness_factor = stiffness_factor
        self.matrix_key = matrix_key
        self.fail_assemble_at = fail_assemble_at
        self.fail_factorize = fail_factorize
        self.n_assemble = 0
        self.n_factorize = 0
        self.n_threads_seen: list[int] = []

    def build_space(self, geometry, order):
        raise NotImplementedError

    def assemble(self, cmesh, u, *, n_threads=0, show_progress=False):
        call = self.n_assemble
        self.n_assemble += 1
        self.n_threads_seen.append(n_threads)
        if self.fail_assemble_at is not None and call >= self.fail_assemble_at:
            raise AssemblyError("剛体モードが拘束されていません。")
        r = self.K @ u - F_EXT
        return AssembledSystem(
            stiffness=(self.stiffness_factor * self.K).tocsr(),
            rhs=r,
            fixed_dofs=np.zeros(0, dtype=np.int64),
            matrix_key=self.matrix_key,
        )

    def assemble_residual(self, cmesh, u):
        return F_EXT - self.K @ u

    def factorize(self, K, config):
        self.n_factorize += 1
        if self.fail_factorize:
            raise FactorizationError("特異な行列です（ゼロピボット）。")
        return factorize(K, config)

    def solve(self, factor, rhs):
        return factor.solve(rhs)

    def graph_mesh(self, cmesh, subdivision_level=0):
        raise NotImplementedError

    def extract_field(self, cmesh, u, name, graph):
        raise NotImplementedError


def _fake_cmesh():
    return SimpleNamespace(n_dofs=3)


def _analysis(backend, **kwargs):
    return EquilibriumAnalysis(_fake_cmesh(), backend=backend, show_progress=False, **kwargs)


class TestSingleIteration:
    def test_fake_backend_satisfies_protocol(self):
        assert isinstance(FakeBackend(), FiniteElementBackend)

    def test_linear_system_converges_in_one_iteration(self):
        backend = FakeBackend()
        analysis = _analysis(backend)
        result = analysis.run(tol=1e-8, max_iterations=1)
        assert result.converged
        assert result.state is AnalysisState.CONVERGED
        assert analysis.state is AnalysisState.CONVERGED
        assert result.n_iterations == 1
        np.testing.assert_allclose(result.u, np.linalg.solve(K_DENSE, F_EXT))
        assert result.residual_norm < 1e-8
        assert backend.n_assemble == 1

    def test_initial_state(self):
        analysis = _analysis(FakeBackend())
        assert analysis.state is AnalysisState.UNINITIALIZED
        np.testing.assert_array_equal(analysis.u, np.zeros(3))

    def test_single_iteration_not_converged(self):
        """反復上限 1 で残差が tol 以上なら MAX_ITERATIONS_REACHED（例外にはならない）."""
        analysis = _analysis(FakeBackend(stiffness_factor=2.0))
        result = analysis.run(tol=1e-8, max_iterations=1)
        assert not result.converged
        assert result.state is AnalysisState.MAX_ITERATIONS_REACHED
        assert result.n_iterations == 1
        assert len(result.residual_history) == 1

    def test_threads_forwarded_to_assembly(self):
        backend = FakeBackend()
        _analysis(backend, solver_config=SolverConfig(n_threads=4)).run(tol=1e-8)
        assert backend.n_threads_seen == [4]


class TestIterations:
    def test_residual_decreases_until_converged(self):
        # 剛性 2K で解くと誤差は毎反復 1/2 になる
        analysis = _analysis(FakeBackend(stiffness_factor=2.0))
        result = analysis.run(tol=1e-6, max_iterations=100)
        assert result.converged
        history = np.array(result.residual_history)
        np.testing.assert_allclose(history[1:] / history[:-1], 0.5, rtol=1e-8)
        assert result.n_iterations == len(history)
        assert history[-1] < 1e-6 <= history[-2]

    def test_max_iterations_reached(self):
        result = _analysis(FakeBackend(stiffness_factor=2.0)).run(tol=1e-12, max_iterations=3)
        assert result.state is AnalysisState.MAX_ITERATIONS_REACHED
        assert result.n_iterations == 3

    def test_factorization_reused_for_same_key(self):
        backend = FakeBackend(stiffness_factor=2.0)
        _analysis(backend).run(tol=1e-12, max_iterations=4)
        assert backend.n_assemble == 4
        assert backend.n_factorize == 1

    def test_factorization_repeated_without_key(self):
        backend = FakeBackend(stiffness_factor=2.0, matrix_key=None)
        _analysis(backend).run(tol=1e-12, max_iterations=4)
        assert backend.n_factorize == 4

    def test_u0(self):
        u_exact = np.linalg.solve(K_DENSE, F_EXT)
        result = _analysis(FakeBackend(stiffness_factor=2.0)).run(
            tol=1e-8, max_iterations=1, u0=u_exact
        )
        assert result.converged
        np.testing.assert_allclose(result.u, u_exact)


class TestRepeatedRuns:
    def test_runs_are_deterministic(self):
        analysis = _analysis(FakeBackend(stiffness_factor=2.0))
        r1 = analysis.run(tol=1e-12, max_iterations=5)
        r2 = analysis.run(tol=1e-12, max_iterations=5)
        np.testing.assert_array_equal(r1.u, r2.u)
        assert r1.residual_history == r2.residual_history

    def test_result_u_is_a_copy(self):
        analysis = _analysis(FakeBackend())
        result = analysis.run(tol=1e-8)
        result.u[:] = 0.0
        assert np.any(analysis.u != 0.0)


class TestFailures:
    def test_assembly_error_carries_context(self):
        backend = FakeBackend(stiffness_factor=2.0, fail_assemble_at=2)
        analysis = _analysis(backend)
        with pytest.raises(AssemblyError, match="iteration=2") as info:
            analysis.run(tol=1e-12, max_iterations=5)
        assert info.value.iteration == 2
        assert info.value.n_dofs == 3
        assert isinstance(info.value.__cause__, AssemblyError)

    def test_last_valid_u_preserved(self):
        reference = _analysis(FakeBackend(stiffness_factor=2.0)).run(tol=1e-12, max_iterations=2)
        analysis = _analysis(FakeBackend(stiffness_factor=2.0, fail_assemble_at=2))
        with pytest.raises(AssemblyError):
            analysis.run(tol=1e-12, max_iterations=5)
        np.testing.assert_array_equal(analysis.u, reference.u)

    def test_factorization_error_carries_context(self):
        analysis = _analysis(FakeBackend(fail_factorize=True))
        with pytest.raises(FactorizationError) as info:
            analysis.run(tol=1e-8)
        assert info.value.iteration == 0
        assert info.value.n_dofs == 3
        np.testing.assert_array_equal(analysis.u, np.zeros(3))
        assert analysis.state is AnalysisState.SOLVING

    def test_non_finite_update_rejected(self):
        class NanBackend(FakeBackend):
            def solve(self, factor, rhs):
                return np.full(3, np.nan)

        analysis = _analysis(NanBackend())
        with pytest.raises(FactorizationError, match="非有限"):
            analysis.run(tol=1e-8)
        np.testing.assert_array_equal(analysis.u, np.zeros(3))

    @pytest.mark.parametrize(
        "kwargs",
        [{"tol": 0.0}, {"tol": -1.0}, {"max_iterations": 0}, {"max_iterations": 1.5}],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            _analysis(FakeBackend()).run(**kwargs)

    def test_u0_shape_checked(self):
        with pytest.raises(ValueError, match="u0"):
            _analysis(FakeBackend()).run(u0=np.zeros(4))


class TestProgressOutput:
    def test_not_converged_message(self, capsys):
        analysis = EquilibriumAnalysis(
            _fake_cmesh(), backend=FakeBackend(stiffness_factor=2.0), show_progress=True
        )
        analysis.run(tol=1e-12, max_iterations=2)
        out = capsys.readouterr().out
        assert "[equilibrium] iter 1" in out
        assert "not converged after 2 iteration(s)" in out
        assert "reuse factorization" in out
