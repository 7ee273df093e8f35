# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import numpy as np

from . import _util
from . import kernel as _kernel
from . import poly
from . import sve


class IRBasisSet:
    """Intermediate representation (IR) basis for a given kernel.

    For a continuation kernel ``K(x, y)`` on ``[-1, 1] x [-1, 1]``, this class
    stores the truncated singular value expansion or IR basis::

        K(x, y) ≈ sum(s[l] * u[l](x) * v[l](y) for l in range(dim()))

    where ``x = 2*τ/β - 1`` is the reduced imaginary time and ``y = ω/ωmax``
    the reduced real frequency.  The basis functions ``u[l]``, ``v[l]`` are
    piecewise polynomials, which are even for even ``l`` and odd for odd
    ``l``.

    Example:
        The following example code assumes the spectral function is a single
        pole at y = 0.5::

            # Compute IR basis for fermions and Λ = 100
            import irlib
            basis = irlib.basis_f(100)

            # Expansion coefficients of the Green's function and its value
            # on the first few Matsubara frequencies
            gl = basis.s * np.array([basis.vly(l, 0.5) for l in range(basis.dim())])
            giw = basis.compute_Tnl([0, 1, 2, 3]) @ gl
    """
    def __init__(self, kernel, max_dim=None, cutoff=1e-12, Nl=10, *,
                 quadrature_order=12, work_dtype=None, sve_result=None):
        if sve_result is None:
            sve_result = sve.compute(kernel, max_dim, cutoff, Nl,
                                     quadrature_order, work_dtype=work_dtype)

        u, s, v = sve_result.part(max_dim)
        self._kernel = kernel
        self._sve_result = sve_result
        self._statistics = kernel.statistics
        self._u = u
        self._s = s
        self._v = v
        self._uhat = poly.PiecewisePolyFT(u, n_gauss=quadrature_order)

    def dim(self):
        """Number of basis functions / singular values"""
        return self._s.size

    def sl(self, l):
        """Singular value ``s[l]``"""
        return self._s[_util.check_index(l, self.size)]

    def ulx(self, l, x):
        """Value of the ``l``-th basis function in reduced imaginary time"""
        return _eval_symmetric(self._u[_util.check_index(l, self.size)], l, x)

    def vly(self, l, y):
        """Value of the ``l``-th basis function in reduced real frequency"""
        return _eval_symmetric(self._v[_util.check_index(l, self.size)], l, y)

    def ul(self, l):
        """Return the ``l``-th basis function in ``x`` as piecewise polynomial"""
        return self._u[_util.check_index(l, self.size)]

    def vl(self, l):
        """Return the ``l``-th basis function in ``y`` as piecewise polynomial"""
        return self._v[_util.check_index(l, self.size)]

    def compute_Tnl(self, n):
        """Compute transformation matrix to Matsubara frequencies.

        For a list of non-negative, ascending Matsubara indices ``n``, returns
        the complex matrix ``T[i, l]``, which maps the expansion coefficients
        ``G[l]`` of a propagator in imaginary time onto its values at the
        Matsubara frequencies ``iω[n[i]]``::

            T[i, l] == ∫ dx exp(1j * π * (n[i] + 1/2) * (x + 1)) u[l](x) / sqrt(2)

        for fermions, and likewise with ``n[i]`` in place of ``n[i] + 1/2``
        for bosons.
        """
        n = _util.check_frequencies(n)
        if self._statistics == 'F':
            o = 2 * n + 1
        else:
            o = 2 * n
        return self._uhat(o)

    def compute_Tbar_ol(self, o):
        """Compute transformation matrix for a list of reduced frequencies.

        Same as ``compute_Tnl``, but for the list of non-negative, ascending
        integers ``o``, where odd (even) ``o`` correspond to fermionic
        (bosonic) Matsubara frequencies ``ω = π * o / β``.
        """
        return self._uhat(o)

    def get_statistics(self):
        return self._statistics

    @property
    def statistics(self):
        """Statistics: 'F' for fermions or 'B' for bosons"""
        return self._statistics

    @property
    def kernel(self):
        """Kernel of which this is the singular value expansion"""
        return self._kernel

    @property
    def lambda_(self):
        return self._kernel.lambda_

    @property
    def size(self): return self._s.size

    @property
    def s(self) -> np.ndarray:
        """Vector of singular values of the continuation kernel"""
        return self._s

    @property
    def u(self):
        """List of basis functions on the (reduced) imaginary time axis"""
        return self._u

    @property
    def v(self):
        """List of basis functions on the (reduced) real frequency axis"""
        return self._v

    @property
    def sve_result(self):
        return self._sve_result

    def __repr__(self):
        return (f"{self.__class__.__name__}({self._kernel!r}, "
                f"<{self.size} basis functions>)")


def basis_f(lambda_, max_dim=None, cutoff=1e-12, Nl=10):
    """Construct IR basis for fermions"""
    return IRBasisSet(_kernel.FermionicKernel(lambda_), max_dim, cutoff, Nl)


def basis_b(lambda_, max_dim=None, cutoff=1e-12, Nl=10):
    """Construct IR basis for bosons"""
    return IRBasisSet(_kernel.BosonicKernel(lambda_), max_dim, cutoff, Nl)


def _eval_symmetric(p, l, x):
    """Evaluate function of parity (-1)**l using the positive half only"""
    x = _util.check_range(x, -1, 1)
    value = p(np.abs(x))
    if l % 2 == 0:
        return value
    return np.where(x < 0, -value, value)[()]
