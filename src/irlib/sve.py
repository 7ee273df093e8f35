# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
from warnings import warn
import numpy as np
import scipy.special as sp_special

from . import gauss
from . import kernel as _kernel
from . import poly
from . import svd

HAVE_XPREC = svd._ddouble is not None


def compute(K, max_dim=None, cutoff=1e-12, Nl=10, n_gauss=12, dtype=float,
            work_dtype=None, svd_strat=None):
    """Perform truncated singular value expansion of a kernel.

    Perform a truncated singular value expansion (SVE) of a centrosymmetric
    integral kernel ``K : [-1, 1] x [-1, 1] -> R``:

        K(x, y) == sum(s[l] * u[l](x) * v[l](y) for l in (0, 1, 2, ...)),

    where ``s[l]`` are the singular values, which are ordered in non-increasing
    fashion, ``u[l](x)`` are the left singular functions, which form an
    orthonormal system on ``[-1, 1]``, and ``v[l](y)`` are the right
    singular functions, which form an orthonormal system on ``[-1, 1]``.
    ``u[l]`` and ``v[l]`` are even functions for even ``l`` and odd
    functions for odd ``l``.

    The SVE is mapped onto the singular value decomposition (SVD) of a pair
    of matrices (even and odd sector) by projecting the kernel onto
    piecewise Legendre polynomials on the positive half of the interval.

    Arguments:

      - ``K``: Integral kernel to take SVE from
      - ``max_dim``: Maximum basis size.  If given, only at most the
        ``max_dim`` most significant singular values and associated singular
        functions are returned.
      - ``cutoff``:  Relative cutoff for the singular values: singular values
        with ``s[l] / s[0] < cutoff`` are dropped.
      - ``Nl``: Number of Legendre polynomials per segment.
      - ``n_gauss``: Order of the Gauss-Legendre rule used for the projection.
      - ``dtype``: Data type of the result.
      - ``work_dtype``: Working data type.  Defaults to a data type with
        machine epsilon of at least ``cutoff**2``, or otherwise most accurate
        data type available.
      - ``svd_strat``: SVD solver.  Defaults to the usual SVD when accuracy
        goals are moderate, and the more accurate Jacobi-based algorithm
        otherwise.

    Return an ``SVEResult`` instance.  Raises ``RuntimeError`` if the retained
    singular values are not in non-increasing order, which signals that the
    working precision is insufficient for the requested cutoff.
    """
    _check_params(max_dim, cutoff, Nl, n_gauss)
    if work_dtype is None or svd_strat is None:
        work_dtype, default_svd_strat = _choose_accuracy(cutoff, work_dtype)
    if svd_strat is None:
        svd_strat = default_svd_strat

    sve = LegendreProjectionSVE(K, cutoff, Nl=Nl, n_gauss=n_gauss,
                                dtype=work_dtype)
    u, s, v = zip(*(svd.compute(matrix, svd_strat)
                    for matrix in sve.matrices))
    u, s, v, signs = truncate(u, s, v, cutoff, max_dim)
    return sve.postprocess(u, s, v, signs, dtype)


def generate_ir_basis(kernel, max_dim, cutoff=1e-12, Nl=10,
                      quadrature_order=12, *, work_dtype=None):
    """Generate IR basis functions for a kernel.

    Convenience wrapper around :func:`compute`, which returns the tuple
    ``(s, u, v)`` of the singular values (vector) and the lists of left and
    right singular functions (``PiecewisePoly`` on ``[-1, 1]``).
    """
    u, s, v = compute(kernel, max_dim, cutoff, Nl, quadrature_order,
                      work_dtype=work_dtype)
    return s, u, v


class SVEResult:
    """Truncated singular value expansion of a kernel.

    Attributes:
        u (list of PiecewisePoly):
            Left singular functions ``u[l](x)`` on ``[-1, 1]``
        s (ndarray):
            Singular values in non-increasing order
        v (list of PiecewisePoly):
            Right singular functions ``v[l](y)`` on ``[-1, 1]``
        K (KernelBase):
            Kernel the expansion was computed for
        Nl, n_gauss:
            Legendre order and Gauss-Legendre order of the discretization
        work_dtype:
            Working precision (numpy dtype) of the computation
    """
    def __init__(self, u, s, v, K, *, Nl=None, n_gauss=None, work_dtype=None):
        u = list(u)
        v = list(v)
        s = np.asarray(s)
        if not (len(u) == s.size == len(v)):
            raise ValueError("mismatch between number of singular values "
                             "and singular functions")
        self.u = u
        self.s = s
        self.v = v
        self.K = K
        self.Nl = Nl
        self.n_gauss = n_gauss
        self.work_dtype = work_dtype

    def __iter__(self):
        return iter((self.u, self.s, self.v))

    @property
    def size(self): return self.s.size

    def part(self, max_dim=None):
        """Return ``(u, s, v)`` restricted to the leading ``max_dim`` terms"""
        if max_dim is None:
            max_dim = self.size
        if max_dim < 0 or int(max_dim) != max_dim:
            raise ValueError("invalid value of maximum number of singular values")
        max_dim = int(max_dim)
        return self.u[:max_dim], self.s[:max_dim], self.v[:max_dim]


class LegendreProjectionSVE:
    """SVE of centrosymmetric kernel in block-diagonal (even/odd) basis.

    For a centrosymmetric kernel ``K``, i.e., a kernel satisfying:
    ``K(x, y) == K(-x, -y)``, one can make the following ansatz for the
    singular functions:

        u[l](x) = ured[l](x) + sign[l] * ured[l](-x)
        v[l](y) = vred[l](y) + sign[l] * vred[l](-y)

    where ``sign[l]`` is either +1 or -1.  This means that the singular value
    expansion can be block-diagonalized into an even and an odd part by
    (anti-)symmetrizing the kernel:

        Keven = K(x, y) + K(x, -y)
        Kodd  = K(x, y) - K(x, -y)

    Each reduced kernel on ``[0, 1] x [0, 1]`` is projected onto the basis of
    normalized Legendre polynomials on segments ``S[s] = [a[s], a[s+1]]``::

        phi[s,l](x) == sqrt(2/(a[s+1] - a[s])) * sqrt(l + 1/2) * P[l](t),

    where ``t ∈ [-1, 1]`` is the position relative to the segment.  The
    integrals are done with a composite Gauss-Legendre rule, which gives the
    matrix::

        A[s*Nl + l, s'*Nl + l'] == ∫∫ dx dy phi[s,l](x) K(x, y) phi[s',l'](y)

    The singular vectors of ``A`` are the expansion coefficients of the
    singular functions in ``phi``.
    """
    def __init__(self, K, cutoff, *, Nl=10, n_gauss=12, dtype=float):
        if not K.is_centrosymmetric:
            raise ValueError("kernel must be centrosymmetric")
        self.K = K
        self.cutoff = cutoff
        self.Nl = Nl
        self.n_gauss = n_gauss
        self.dtype = dtype

        hints = K.get_symmetrized(+1).sve_hints(cutoff)
        self._rule = gauss.legendre(n_gauss, dtype)
        # Legendre order is lower than the hints are tuned for; the x knots
        # also serve as interpolation grid, so split each segment further.
        segs_x = _subdivide(hints.segments_x, int(np.ceil(30 / Nl)))
        self._segs_x = segs_x.astype(dtype)
        self._segs_y = hints.segments_y.astype(dtype)
        self._gauss_x = self._rule.piecewise(self._segs_x)
        self._gauss_y = self._rule.piecewise(self._segs_y)
        self._phi_x = _projector(self._rule, self._segs_x, Nl)
        self._phi_y = _projector(self._rule, self._segs_y, Nl)

    @property
    def matrices(self):
        """SVD problems underlying the SVE: even sector, then odd sector."""
        for sign in (+1, -1):
            Kred = self.K.get_symmetrized(sign)
            kmat = _kernel.matrix_from_gauss(Kred, self._gauss_x, self._gauss_y)
            yield _project(kmat, self._phi_x, self._phi_y)

    def postprocess(self, u, s, v, signs, dtype=float):
        """Constructs the SVE result from the SVD"""
        u_data, knots_x = _reconstruct(u, signs, self._segs_x, self.Nl)
        v_data, knots_y = _reconstruct(v, signs, self._segs_y, self.Nl)
        knots_x = knots_x.astype(dtype)
        knots_y = knots_y.astype(dtype)
        ulx = [poly.PiecewisePoly(data, knots_x) for data in u_data.astype(dtype)]
        vly = [poly.PiecewisePoly(data, knots_y) for data in v_data.astype(dtype)]
        _canonicalize(ulx, vly)
        return SVEResult(ulx, s.astype(dtype), vly, self.K, Nl=self.Nl,
                         n_gauss=self.n_gauss, work_dtype=self.dtype)


def truncate(u, s, v, cutoff=0, max_dim=None):
    """Truncate singular value decomposition of even and odd sector.

    Arguments:

     - ``u``, ``s``, ``v``: Pairs (even, odd) of thin SVDs.
     - ``cutoff`` : Only singular values satisfying ``s[l]/s_even[0] >=
       cutoff`` are retained.
     - ``max_dim`` : If given, at most the ``max_dim`` most significant
       singular values are retained.

    The singular values of both sectors are interleaved, starting with the
    even one: for each ``i``, the even triplet ``i`` is considered before the
    odd triplet ``i``, and the first one failing the criteria ends the
    sequence.  Consequentially, the ``l``-th retained triplet stems from the
    even sector if ``l`` is even and from the odd sector otherwise.

    Returns ``(u, s, v, signs)``, where the columns of ``u``, ``v`` are the
    retained singular vectors and ``signs`` is ``+1`` (even) or ``-1`` (odd).
    """
    if max_dim is not None and (max_dim < 1 or int(max_dim) != max_dim):
        raise ValueError("invalid value of maximum number of singular values")
    if cutoff < 0 or cutoff > 1:
        raise ValueError("invalid relative cutoff")

    s_even, s_odd = s
    s0 = s_even[0]
    selected = []
    for i in range(s_even.size):
        if len(selected) == max_dim or s_even[i] / s0 < cutoff:
            break
        selected.append((0, i))
        if (len(selected) == max_dim or i >= s_odd.size
                or s_odd[i] / s0 < cutoff):
            break
        selected.append((1, i))

    # Check if singular values are in decreasing order
    s_cut = np.concatenate([s[sector][i:i+1] for (sector, i) in selected])
    s_check = s_cut.astype(float)
    if (s_check[1:] > s_check[:-1]).any():
        raise RuntimeError(
            "Singular values are not in decreasing order. This may be due to "
            "numerical round-off errors. You may ask for fewer basis "
            "functions, a larger cutoff or higher working precision!")

    u_cut = np.concatenate([u[sector][:, i:i+1] for (sector, i) in selected],
                           axis=1)
    v_cut = np.concatenate([v[sector][:, i:i+1] for (sector, i) in selected],
                           axis=1)
    signs = np.array([1.0 if sector == 0 else -1.0 for (sector, _) in selected])
    return u_cut, s_cut, v_cut, signs


def _subdivide(segs, n):
    """Split each segment into n pieces of equal width"""
    segs = np.asarray(segs)
    if n <= 1:
        return segs
    start = segs[:-1, None]
    width = np.diff(segs)[:, None]
    inner = start + width * (np.arange(n) / n)
    return np.append(inner.ravel(), segs[-1])


def _projector(rule, segs, Nl):
    """Normalized Legendre polynomials times quadrature weights per segment.

    Returns ``phi[s, l, n] == phi[s,l](x[s,n]) * w[s,n]``, where ``x[s,n]``
    and ``w[s,n]`` is the Gauss rule reseated to segment ``s``.
    """
    # sqrt(2/dx) * (dx/2) == sqrt(dx/2)
    dsegs = segs[1:] - segs[:-1]
    scale = np.sqrt(.5 * dsegs)
    leg = gauss.normalized_legendre_vander(rule.x, Nl) * rule.w
    return scale[:, None, None] * leg[None, :, :]


def _project(kmat, phi_x, phi_y):
    """Project kernel values at quadrature nodes onto Legendre basis"""
    nsegs_x, Nl, n_gauss = phi_x.shape
    nsegs_y = phi_y.shape[0]

    # Perform the following, but segment by segment:
    #   A[s,l,t,m] == sum(phi_x[s,l,n] * K[s,n,t,k] * phi_y[t,m,k])
    kmat = kmat.reshape(nsegs_x, n_gauss, nsegs_y * n_gauss)
    tmp = phi_x @ kmat
    tmp = tmp.reshape(nsegs_x * Nl, nsegs_y, n_gauss).transpose(1, 0, 2)
    res = tmp @ phi_y.transpose(0, 2, 1)
    return res.transpose(1, 0, 2).reshape(nsegs_x * Nl, nsegs_y * Nl)


def _legendre_to_monomial(Nl, dtype=float):
    """Monomial coefficients of normalized Legendre polynomials.

    Returns matrix ``c`` such that::

        sqrt(l + 1/2) * P[l](t) == sum(c[l, d] * (t + 1)**d for d in ...)

    We use that the Taylor coefficients around ``t = -1`` are known in closed
    form: ``P[l]^(d)(-1)/d! == (-1)**(l+d) * binom(l, d) * binom(l+d, d) / 2**d``
    """
    l = np.arange(Nl)[:, None]
    d = np.arange(Nl)[None, :]
    coeff = ((-1.0)**(l + d) * sp_special.comb(l, d) * sp_special.comb(l + d, d)
             / 2.0**d)
    coeff = coeff.astype(dtype)
    norm = np.sqrt(np.arange(0.5, Nl + 0.5, dtype=dtype))
    return norm[:, None] * coeff


def _reconstruct(vectors, signs, segs, Nl):
    """Build piecewise polynomials on [-1, 1] from reduced singular vectors.

    The columns of ``vectors`` hold the coefficients of functions on [0, 1] in
    the segment-wise normalized Legendre basis, ``signs`` their parity.  Each
    function is continued to [-1, 0] according to its parity, normalized
    on [-1, 1] and converted to a monomial expansion around the left edge of
    each segment.

    The half-domain segments ``S[s] = [a[s], a[s+1]]``, ``s = 0 .. nsegs-1``,
    map onto the full partition as follows:

      - ``S[s]`` itself becomes full segment ``nsegs + s``;
      - its mirror image ``[-a[s+1], -a[s]]`` becomes full segment
        ``nsegs - 1 - s``.

    Returns the coefficient array ``data[l, segment, d]`` and the knots.
    """
    dtype = vectors.dtype
    nsegs = segs.size - 1
    nvec = vectors.shape[1]
    dsegs = segs[1:] - segs[:-1]
    coeffs = vectors.T.reshape(nvec, nsegs, Nl)
    leg2mono = _legendre_to_monomial(Nl, dtype)

    # The function on segment s is
    #
    #     1/sqrt(2) * sqrt(2/dx) * sum(c[l] * Pnorm[l](2*(x - a[s])/dx - 1))
    #
    # where 1/sqrt(2) ensures normalization on [-1, 1].  Expanding Pnorm in
    # powers of (x - a[s]) introduces a factor of (2/dx)**d for each power d.
    scale = []
    curr = 1 / np.sqrt(dsegs)
    for _ in range(Nl):
        scale.append(curr)
        curr = curr * (2 / dsegs)
    scale = np.stack(scale, axis=1)
    data_pos = (coeffs @ leg2mono) * scale

    # The mirror image of segment s starts at x == -a[s+1], which corresponds
    # to t == 1 in the segment, where Pnorm[l] picks up a sign (-1)**l.
    legsign = ((-1.0) ** np.arange(Nl)).astype(dtype)
    parity = np.asarray(signs).astype(dtype)
    data_neg = ((coeffs * legsign) @ leg2mono) * scale
    data_neg *= parity[:, None, None]

    data = np.concatenate([data_neg[:, ::-1, :], data_pos], axis=1)
    knots = np.concatenate([-segs[::-1], segs[1:]])
    return data, knots


def _check_params(max_dim, cutoff, Nl, n_gauss):
    if max_dim is not None and (max_dim < 1 or int(max_dim) != max_dim):
        raise ValueError("max_dim must be a positive integer")
    if not (0 <= cutoff <= 1):
        raise ValueError("cutoff must be in the interval [0, 1]")
    if Nl < 1 or int(Nl) != Nl:
        raise ValueError("Nl must be a positive integer")
    if n_gauss < 1 or int(n_gauss) != n_gauss:
        raise ValueError("order of Gauss-Legendre rule must be positive")


def _choose_accuracy(cutoff, work_dtype):
    """Choose work dtype and SVD strategy based on cutoff"""
    if work_dtype is None:
        if cutoff >= np.sqrt(svd.finfo(float).eps):
            return float, 'default'
        work_dtype = svd.MAX_DTYPE

    safe_eps = np.sqrt(svd.finfo(work_dtype).eps)
    if cutoff >= safe_eps:
        return work_dtype, 'default'

    msg = ("\nBasis cutoff is {:.2g}, which is below sqrt(eps) with\n"
           "eps = {:.2g}.  Expect singular values and basis functions\n"
           "for large l to have lower precision than the cutoff.\n")
    msg = msg.format(float(cutoff), float(np.square(safe_eps)))
    if not HAVE_XPREC:
        msg += "You can install the xprec package to gain more precision.\n"
    warn(msg, UserWarning, 3)
    return work_dtype, 'accurate'


def _canonicalize(ulx, vly):
    """Canonicalize basis.

    Each SVD (u_l, v_l) pair is unique only up to a global phase, which may
    differ from implementation to implementation and also platform.  We
    fix that gauge by demanding u_l(1) >= 0.  This ensures a diffeomorphic
    connection to the Legendre polynomials for lambda_ -> 0.
    """
    for l, ul in enumerate(ulx):
        if ul(1) < 0:
            ulx[l] = -ul
            vly[l] = -vly[l]
