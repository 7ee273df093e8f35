# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import numpy as np
import scipy.special as sp_special

import irlib
from irlib import poly

import pytest


def _monomials(n_basis, n_section=10, k=8):
    """Functions x**n on [-1, 1], expanded around the left section edges"""
    knots = np.linspace(-1, 1, n_section + 1)
    result = []
    for n in range(n_basis):
        data = np.zeros((n_section, k + 1))
        for l in range(min(n, k) + 1):
            data[:, l] = sp_special.comb(n, l) * knots[:-1] ** (n - l)
        result.append(poly.PiecewisePoly(data, knots))
    return result


def test_monomials():
    funcs = _monomials(3)
    x = 0.9
    for n, f in enumerate(funcs):
        np.testing.assert_allclose(f(x), x**n, rtol=0, atol=1e-8)

    x = np.linspace(-1, 1, 37)
    np.testing.assert_allclose(funcs[2](x), x**2, rtol=0, atol=1e-14)


def test_overlap():
    funcs = _monomials(3)
    for n, fn in enumerate(funcs):
        for m, fm in enumerate(funcs):
            expected = (1 - (-1)**(n + m + 1)) / (n + m + 1)
            np.testing.assert_allclose(fn.overlap(fm), expected,
                                       rtol=0, atol=1e-8)


def test_linearity():
    funcs = _monomials(3)
    x = 0.9
    for fn in funcs:
        np.testing.assert_allclose((4.0 * fn)(x), 4 * fn(x))
        np.testing.assert_allclose((fn * 4.0)(x), 4 * fn(x))
        np.testing.assert_allclose((fn / 4.0)(x), fn(x) / 4)
        np.testing.assert_allclose((-fn)(x), -fn(x))
        for fm in funcs:
            np.testing.assert_allclose((fn + fm)(x), fn(x) + fm(x))
            np.testing.assert_allclose((fn - fm)(x), fn(x) - fm(x))


def test_numpy_scalar_factor():
    f, = _monomials(1)
    g = np.float64(3) * f
    assert isinstance(g, poly.PiecewisePoly)
    assert g(0.3) == 3


def test_orthonormalize():
    funcs = poly.orthonormalize(_monomials(3))
    for n, fn in enumerate(funcs):
        for m, fm in enumerate(funcs):
            np.testing.assert_allclose(fn.overlap(fm), float(n == m),
                                       rtol=0, atol=1e-8)

    # Second function is the normalized Legendre polynomial sqrt(3/2) * x
    x = 0.9
    np.testing.assert_allclose(funcs[1](x) * np.sqrt(2/3), x, atol=1e-8)


def test_orthonormalize_dependent():
    f0, f1 = _monomials(2)
    with pytest.raises(RuntimeError):
        poly.orthonormalize([f0, f1, 2 * f1 - f0])


def test_invalid_knots():
    with pytest.raises(ValueError):
        poly.PiecewisePoly(np.zeros((2, 3)), [0, 1, 1])
    with pytest.raises(ValueError):
        poly.PiecewisePoly(np.zeros((2, 3)), [0, 1])
    with pytest.raises(ValueError):
        poly.PiecewisePoly([[np.nan]], [0, 1])


def test_knot_mismatch():
    f = poly.PiecewisePoly([[1.0], [1.0]], [-1, 0, 1])
    g = poly.PiecewisePoly([[1.0], [1.0]], [-1, 0.5, 1])
    with pytest.raises(ValueError):
        f + g
    with pytest.raises(ValueError):
        f - g

    # Overlap works on the common refinement, however
    np.testing.assert_allclose(f.overlap(g), 2)


def test_domain():
    f, = _monomials(1)
    with pytest.raises(irlib.DomainError):
        f(1.5)
    with pytest.raises(ValueError):
        f([-1.01, 0])


def test_restrict():
    f = _monomials(4)[3]
    g = f.restrict(np.union1d(f.knots, [-0.9, -0.75, 0.35]))
    x = np.linspace(-1, 1, 41)
    np.testing.assert_allclose(g(x), f(x), rtol=0, atol=1e-14)
    with pytest.raises(ValueError):
        f.restrict([-1, 0.05, 1])


def test_section_edges():
    f, = _monomials(1)
    assert f.nsegments == 10
    assert f.section_edge(0) == -1
    assert f.section_edge(10) == 1
    assert f.compute_value(0.25) == f(0.25)


def test_cspline():
    x = np.linspace(0, np.pi, 21)
    y = np.sin(x)
    f = poly.from_cspline(x, y)
    assert f.order == 3
    np.testing.assert_allclose(f(x), y, rtol=0, atol=1e-14)

    xfine = np.linspace(0, np.pi, 101)
    np.testing.assert_allclose(f(xfine), np.sin(xfine), rtol=0, atol=1e-4)


def test_ft_legendre():
    # For p[0] == 1/sqrt(2), the transform is known in closed form
    knots = np.linspace(-1, 1, 5)
    data0 = np.zeros((4, 3))
    data0[:, 0] = 1/np.sqrt(2)
    data1 = np.zeros((4, 3))
    data1[:, 0] = np.sqrt(1.5) * knots[:-1]
    data1[:, 1] = np.sqrt(1.5)
    p = [poly.PiecewisePoly(data0, knots), poly.PiecewisePoly(data1, knots)]

    o = np.array([0, 1, 2, 3, 11, 300])
    tbar = poly.PiecewisePolyFT(p)(o)
    assert tbar.shape == (6, 2)

    w = np.pi/2 * o[1:]
    expected0 = np.hstack([1, (np.exp(2j * w) - 1) / (2j * w)])
    np.testing.assert_allclose(tbar[:, 0], expected0, rtol=0, atol=1e-13)


def test_ft_invalid():
    f, = _monomials(1)
    ft = poly.PiecewisePolyFT([f])
    with pytest.raises(ValueError):
        ft([-1, 2])
    with pytest.raises(ValueError):
        ft([3, 2])
