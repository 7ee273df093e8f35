# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import numpy as np
import irlib
from irlib import kernel
from irlib import sve

import pytest


def _legendre(l, x):
    return np.sqrt(l + 0.5) * np.polynomial.legendre.legval(x, np.eye(l + 1)[l])


@pytest.mark.parametrize("stat", ['F', 'B'])
def test_high_t(basis_high_t, stat):
    # In the high-temperature limit, the basis functions approach the
    # normalized Legendre polynomials
    basis = basis_high_t[stat]
    assert basis.dim() >= 3
    for x in np.linspace(-1, 1, 11):
        for l in range(3):
            assert abs(basis.ulx(l, x) - _legendre(l, x)) < 0.02


@pytest.mark.parametrize("stat", ['F', 'B'])
def test_parity(basis_high_t, basis_f300, basis_b42, stat):
    for basis in [basis_high_t[stat], {'F': basis_f300, 'B': basis_b42}[stat]]:
        x = np.linspace(0, 1, 17)
        for l in range(basis.dim()):
            sign = -1 if l % 2 == 0 else 1
            for f in (basis.u[l], basis.v[l]):
                scale = max(1, np.abs(f(x)).max())
                np.testing.assert_allclose(f(x) + sign * f(-x), 0,
                                           rtol=0, atol=1e-8 * scale)


def test_orthonormal(basis_f300):
    u = basis_f300.u
    gram = np.array([[ui.overlap(uj) for uj in u] for ui in u])
    np.testing.assert_allclose(gram, np.eye(len(u)), rtol=0, atol=1e-8)


def test_decreasing(basis_f300, basis_b42):
    for basis in [basis_f300, basis_b42]:
        s = basis.s
        assert (s[1:] <= s[:-1]).all()
        assert s[-1] / s[0] >= 1e-12


def test_gauge(basis_f300, basis_b42):
    for basis in [basis_f300, basis_b42]:
        for ul in basis.u:
            assert ul(1) >= 0


def test_reconstruct_kernel(basis_b42):
    basis = basis_b42
    x = np.linspace(-1, 1, 13)
    y = np.linspace(-1, 1, 11)
    K = basis.kernel(x[:, None], y[None, :])
    K_sve = sum(sl * ul(x)[:, None] * vl(y)[None, :]
                for sl, ul, vl in zip(basis.s, basis.u, basis.v))
    np.testing.assert_allclose(K_sve, K, rtol=0, atol=1e-6 * np.abs(K).max())


def _sector(*s):
    s = np.array(s)
    vecs = np.eye(3)[:, :s.size]
    return vecs, s, vecs


def test_truncate_interleave():
    even = _sector(1, .1, .01)
    odd = _sector(.5, .05, .005)
    u, s, v, signs = sve.truncate(*zip(even, odd), cutoff=0.02)
    np.testing.assert_array_equal(s, [1, .5, .1, .05])
    np.testing.assert_array_equal(signs, [1, -1, 1, -1])
    assert u.shape == v.shape == (3, 4)
    np.testing.assert_array_equal(u[:, 1], [1, 0, 0])

    _, s, _, signs = sve.truncate(*zip(even, odd), cutoff=0.02, max_dim=3)
    np.testing.assert_array_equal(s, [1, .5, .1])
    np.testing.assert_array_equal(signs, [1, -1, 1])


def test_truncate_short_odd():
    even = _sector(1, .1, .01)
    odd = _sector(.5)
    _, s, _, signs = sve.truncate(*zip(even, odd), cutoff=1e-6)
    np.testing.assert_array_equal(s, [1, .5, .1])
    np.testing.assert_array_equal(signs, [1, -1, 1])


def test_truncate_nonmonotonic():
    even = _sector(1, .6)
    odd = _sector(.5, .4)
    with pytest.raises(RuntimeError):
        sve.truncate(*zip(even, odd), cutoff=1e-6)


@pytest.mark.parametrize("params", [
    dict(cutoff=1.5), dict(cutoff=-1), dict(Nl=0), dict(max_dim=0),
    dict(n_gauss=0)])
def test_invalid_params(params):
    with pytest.raises(ValueError):
        sve.compute(kernel.FermionicKernel(1), **params)


def test_not_centrosymmetric():
    K = kernel.FermionicKernel(1).get_symmetrized(1)
    with pytest.raises(ValueError):
        sve.compute(K, cutoff=1e-6)


def test_generate_ir_basis():
    K = kernel.FermionicKernel(10)
    s, u, v = irlib.generate_ir_basis(K, 5, cutoff=1e-6)
    assert s.shape == (5,)
    assert len(u) == len(v) == 5
    assert u[0].xmin == -1 and u[0].xmax == 1


def test_double_precision():
    K = kernel.BosonicKernel(10)
    result = sve.compute(K, cutoff=1e-6, work_dtype=float)
    assert result.work_dtype is float
    assert result.s.dtype == np.float64
    u, s, v = result.part(4)
    assert s.size == 4
    np.testing.assert_allclose(u[3].overlap(u[3]), 1, rtol=1e-8)


def test_sections_x():
    K = kernel.FermionicKernel(300)
    hints = K.get_symmetrized(+1).sve_hints(1e-12)
    proj = sve.LegendreProjectionSVE(K, 1e-12, Nl=10)
    segs = proj._segs_x
    assert segs.size == 3 * (hints.segments_x.size - 1) + 1
    np.testing.assert_array_equal(segs[::3], hints.segments_x)
    assert segs[-1] - segs[-2] <= 1.01 / (48 * 300)


def test_accurate_fallback():
    K = kernel.FermionicKernel(10)
    with pytest.warns(UserWarning):
        result = sve.compute(K, cutoff=1e-12, work_dtype=float)
    assert result.work_dtype is float
    s = result.s
    assert (s[1:] <= s[:-1]).all()
    assert s[-1] / s[0] >= 1e-12
    np.testing.assert_allclose(result.u[5].overlap(result.u[5]), 1, rtol=1e-8)
    np.testing.assert_allclose(result.v[5].overlap(result.v[5]), 1, rtol=1e-8)
