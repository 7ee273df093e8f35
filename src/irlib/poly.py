# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import numpy as np
import scipy.special as sp_special
import scipy.interpolate as sp_interpolate

from . import _util
from . import gauss


class PiecewisePoly:
    """Piecewise polynomial.

    Models a function on the interval ``[xmin, xmax]`` as a set of segments on
    the intervals ``S[i] = [a[i], a[i+1]]``, where on each interval the
    function is expanded in powers of the distance to the left edge::

        p(x) == sum(data[i, d] * (x - a[i])**d for d in range(order + 1))

    Instances are immutable: the arithmetic operators return new objects.
    """
    # Make numpy scalars defer to __rmul__ instead of broadcasting
    __array_ufunc__ = None

    def __init__(self, data, knots):
        data = np.array(data)
        knots = np.array(knots)
        if data.dtype.kind in 'biu':
            data = data.astype(float)
        if data.ndim != 2:
            raise ValueError("data must be of shape (nsegments, order + 1)")
        if np.isnan(data).any():
            raise ValueError("PiecewisePoly: data contains NaN!")
        nsegments, ncoeff = data.shape
        if knots.shape != (nsegments + 1,):
            raise ValueError("Invalid knots array")
        if not (knots[1:] > knots[:-1]).all():
            raise ValueError("Knots must be strictly increasing")

        data.flags.writeable = False
        knots.flags.writeable = False
        self.data = data
        self.knots = knots
        self.nsegments = nsegments
        self.order = ncoeff - 1
        self.xmin = knots[0]
        self.xmax = knots[-1]
        self.dx = knots[1:] - knots[:-1]

    def __call__(self, x):
        """Evaluate polynomial at position x"""
        i, xtilde = self._split(np.asarray(x))
        return _horner(self.data[i], xtilde)[()]

    def compute_value(self, x):
        """Evaluate polynomial at position x"""
        return self(x)

    def section_edge(self, i):
        """Return the i-th knot (``0 <= i <= nsegments``)"""
        return self.knots[i]

    def overlap(self, other):
        r"""Evaluate overlap integral with another piecewise polynomial.

        Computes the integral over the common domain of both polynomials::

            ∫ dx * self(x) * other(x)

        The integral is done exactly segment by segment.  If the knots of the
        two polynomials differ, both are re-expanded on the union of their
        knots first.
        """
        if not isinstance(other, PiecewisePoly):
            raise TypeError("overlap is defined between piecewise polynomials")
        p, q = _common_refinement(self, other)

        # ∫_0^h dx x**(a+b) == h**(a+b+1) / (a+b+1)
        power = (np.arange(p.order + 1)[:, None]
                 + np.arange(q.order + 1)[None, :] + 1)
        integrals = p.dx[:, None, None] ** power / power
        return (p.data[:, :, None] * q.data[:, None, :] * integrals).sum()

    def restrict(self, knots):
        """Re-expand polynomial on a refinement of its knots.

        The new knots must lie within ``[xmin, xmax]`` and every old knot
        between the first and last new knot must be one of the new knots.
        """
        knots = np.asarray(knots)
        knots = _util.check_range(knots, self.xmin, self.xmax)
        i = self.knots.searchsorted(knots[:-1], 'right') - 1
        if not (knots[1:] <= self.knots[i + 1]).all():
            raise ValueError("knots must be a refinement of polynomial knots")
        data = _taylor_shift(self.data[i], knots[:-1] - self.knots[i])
        return self.__class__(data, knots)

    def __add__(self, other):
        if not isinstance(other, PiecewisePoly):
            return NotImplemented
        self._check_knots(other)
        order = max(self.order, other.order)
        data = _pad_order(self.data, order) + _pad_order(other.data, order)
        return self.__class__(data, self.knots)

    def __sub__(self, other):
        if not isinstance(other, PiecewisePoly):
            return NotImplemented
        return self + (-other)

    def __neg__(self):
        return self.__class__(-self.data, self.knots)

    def __mul__(self, factor):
        if np.ndim(factor) != 0 or isinstance(factor, PiecewisePoly):
            return NotImplemented
        return self.__class__(factor * self.data, self.knots)

    __rmul__ = __mul__

    def __truediv__(self, factor):
        if np.ndim(factor) != 0 or isinstance(factor, PiecewisePoly):
            return NotImplemented
        return self.__class__(self.data / factor, self.knots)

    def __repr__(self):
        return (f"{self.__class__.__name__}(<{self.nsegments} segments on "
                f"[{self.xmin:g}, {self.xmax:g}], order {self.order}>)")

    def _check_knots(self, other):
        if (self.knots.shape != other.knots.shape
                or not (self.knots == other.knots).all()):
            raise ValueError("section edges of polynomials do not match")

    def _split(self, x):
        """Split segment"""
        x = _util.check_range(x, self.xmin, self.xmax)
        i = self.knots.searchsorted(x, 'right').clip(None, self.nsegments)
        i -= 1
        xtilde = x - self.knots[i]
        return i, xtilde


def orthonormalize(polys, rtol=1e-10):
    """Orthonormalize list of piecewise polynomials in place.

    Uses the modified Gram-Schmidt procedure in the order of the list: the
    projections onto all previous (already orthonormal) members are removed
    from each polynomial, then it is normalized.  The list is modified in
    place and returned.

    Raises ``RuntimeError`` if a member is linearly dependent on the previous
    ones, i.e., if less than ``rtol`` of its norm survives the projection.
    """
    for i, p in enumerate(polys):
        norm_orig = np.sqrt(p.overlap(p))
        for q in polys[:i]:
            p = p - p.overlap(q) * q
        norm = np.sqrt(p.overlap(p))
        if not (norm > rtol * norm_orig):
            raise RuntimeError(
                f"Function {i} is linearly dependent on the previous ones")
        polys[i] = p / norm
    return polys


def from_cspline(x, y, bc_type='natural'):
    """Piecewise cubic polynomial interpolating ``(x[i], y[i])``.

    Fits a cubic spline with the given boundary condition (see
    ``scipy.interpolate.CubicSpline``) through the points, with knots at
    ``x``, and returns it as piecewise polynomial of order 3.
    """
    spline = sp_interpolate.CubicSpline(x, y, bc_type=bc_type)
    # CubicSpline stores the highest power first
    return PiecewisePoly(spline.c[::-1].T, spline.x)


class PiecewisePolyFT:
    """Matsubara transform of a set of piecewise polynomials.

    For the set of polynomials ``p[l]`` on ``[-1, 1]``, where ``p[l]`` is even
    for even ``l`` and odd for odd ``l``, computes for integer ``o``::

        Tbar[o, l] == ∫ dx exp(1j * pi/2 * o * (x + 1)) p[l](x) / sqrt(2)

    Using the parity of the functions, the integral is reduced to the
    positive half of the interval, which is then done with Gauss-Legendre
    quadrature on the segments of the polynomials.
    """
    def __init__(self, polys, n_gauss=12):
        polys = list(polys)
        if not polys:
            raise ValueError("need at least one polynomial")
        first = polys[0]
        if first.xmin != -1 or first.xmax != 1:
            raise NotImplementedError("Only interval [-1, 1] supported")
        for p in polys[1:]:
            first._check_knots(p)

        order = max(p.order for p in polys)
        self.data = np.stack([_pad_order(p.data, order) for p in polys])
        self.knots = first.knots
        self.n_gauss = n_gauss
        self._rule = gauss.legendre(n_gauss)
        self._half_knots = np.unique(np.hstack([0, first.knots[first.knots > 0]]))

    @property
    def size(self): return self.data.shape[0]

    def __call__(self, o):
        """Transformation matrix ``Tbar[o, l]`` for non-negative, ordered o"""
        o = _util.check_frequencies(o)
        result = np.empty((o.size, self.size), complex)
        for i, oi in enumerate(o):
            result[i] = self._compute_inner(oi)
        return result

    def _compute_inner(self, o):
        wred = np.pi/2 * o
        rule = self._rule.piecewise(_refine_grid(self._half_knots, wred))
        values = self._values(rule.x)
        integral = values @ (rule.w * np.exp(1j * wred * rule.x))

        # Even functions only have a cosine transform, odd ones only a sine
        # transform, and the integral over [-1, 1] is twice the one on [0, 1]
        is_even = np.arange(self.size) % 2 == 0
        half = np.where(is_even, integral.real, 1j * integral.imag)
        return np.sqrt(2) * _imag_power(o) * half

    def _values(self, x):
        x = _util.check_range(x, self.knots[0], self.knots[-1])
        i = self.knots.searchsorted(x, 'right').clip(None, self.knots.size - 1)
        i -= 1
        return _horner(self.data[:, i], x - self.knots[i])


def _horner(data, x):
    """Evaluate polynomials with coefficients along the last axis of data"""
    res = data[..., -1].copy()
    for d in range(data.shape[-1] - 2, -1, -1):
        res *= x
        res += data[..., d]
    return res


def _taylor_shift(data, delta):
    """Re-expand polynomials in powers of ``x - delta`` instead of ``x``."""
    # p(x) == sum(c[k] * (x - delta + delta)**k) and by the binomial theorem:
    #     c'[j] == sum(c[k] * binom(k, j) * delta**(k-j) for k >= j)
    k = np.arange(data.shape[-1])
    kmj = k[:, None] - k[None, :]
    binom = sp_special.comb(k[:, None], k[None, :])
    shift = binom * delta[:, None, None] ** kmj.clip(0, None)
    shift *= (kmj >= 0)
    return (data[:, :, None] * shift).sum(1)


def _pad_order(data, order):
    """Pad coefficient array with zeros up to polynomial order"""
    extra = order + 1 - data.shape[-1]
    if extra == 0:
        return data
    return np.concatenate([data, np.zeros(data.shape[:-1] + (extra,),
                                          data.dtype)], axis=-1)


def _common_refinement(p, q):
    """Express two polynomials on common knots"""
    if p.knots.shape == q.knots.shape and (p.knots == q.knots).all():
        return p, q
    xmin = max(p.xmin, q.xmin)
    xmax = min(p.xmax, q.xmax)
    if not xmin < xmax:
        raise ValueError("polynomials do not have a common domain")
    knots = np.union1d(p.knots, q.knots)
    knots = knots[(knots >= xmin) & (knots <= xmax)]
    return p.restrict(knots), q.restrict(knots)


def _refine_grid(knots, wmax):
    """Split segments such that the phase exp(1j*wmax*x) winds at most by pi"""
    dx = knots[1:] - knots[:-1]
    npieces = np.maximum(np.ceil(wmax * dx / np.pi).astype(int), 1)
    edges = [np.linspace(a, b, n, endpoint=False)
             for (a, b, n) in zip(knots[:-1], knots[1:], npieces)]
    return np.hstack(edges + [knots[-1:]])


def _imag_power(n):
    """Imaginary unit raised to an integer power without numerical error"""
    n = np.asarray(n)
    if not np.issubdtype(n.dtype, np.integer):
        raise ValueError("expecting set of integers here")
    cycle = np.array([1, 0+1j, -1, 0-1j], complex)
    return cycle[n % 4]
