# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import numpy as np
import pytest


def _reference_tbar(u, o, npieces=4000, deg=16):
    """Transform by brute-force Gauss-Legendre quadrature on [-1, 1]"""
    x, w = np.polynomial.legendre.leggauss(deg)
    edges = np.union1d(u[0].knots, np.linspace(-1, 1, npieces + 1))
    a = edges[:-1, None]
    b = edges[1:, None]
    xs = ((b - a) * (x + 1) / 2 + a).ravel()
    ws = ((b - a) / 2 * w).ravel()

    phase = np.exp(1j * np.pi/2 * np.outer(o, xs + 1))
    values = np.array([ul(xs) for ul in u])
    return (phase * ws) @ values.T / np.sqrt(2)


@pytest.mark.parametrize("which", ['F300', 'B42'])
def test_tnl_reference(basis_f300, basis_b42, which):
    basis = {'F300': basis_f300, 'B42': basis_b42}[which]
    n = np.array([0, 10, 100, 1000])
    o = 2 * n + 1 if basis.statistics == 'F' else 2 * n

    tnl = basis.compute_Tnl(n)
    assert tnl.shape == (n.size, basis.dim())
    ref = _reference_tbar(basis.u, o)
    np.testing.assert_allclose(tnl, ref, rtol=0, atol=1e-10)


def test_tnl_tbar(basis_f300, basis_b42):
    n = np.arange(0, 200, 7)
    np.testing.assert_array_equal(basis_f300.compute_Tnl(n),
                                  basis_f300.compute_Tbar_ol(2 * n + 1))
    np.testing.assert_array_equal(basis_b42.compute_Tnl(n),
                                  basis_b42.compute_Tbar_ol(2 * n))


def test_parity(basis_f300):
    # For fermions, even basis functions have purely imaginary transforms,
    # odd ones purely real ones
    tnl = basis_f300.compute_Tnl([0, 1, 2, 5, 31])
    np.testing.assert_array_equal(tnl[:, ::2].real, 0)
    np.testing.assert_array_equal(tnl[:, 1::2].imag, 0)


def test_high_frequency(basis_b42):
    # Transform decays like 1/o for large frequencies
    tbar = basis_b42.compute_Tbar_ol([10_000, 100_000])
    assert (np.abs(tbar[1]) < np.abs(tbar[0]).max()).all()
    assert np.abs(tbar).max() < 1e-2


def test_invalid_frequencies(basis_b42):
    with pytest.raises(ValueError):
        basis_b42.compute_Tnl([-1, 0])
    with pytest.raises(ValueError):
        basis_b42.compute_Tnl([5, 3])
    with pytest.raises(ValueError):
        basis_b42.compute_Tbar_ol([0.5])
    with pytest.raises(ValueError):
        basis_b42.compute_Tbar_ol([[0, 1]])
