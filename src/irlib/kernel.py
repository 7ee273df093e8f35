# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import numpy as np


class KernelBase:
    """Integral kernel ``K(x, y)``.

    Abstract base class for an integral kernel, i.e., a real binary function
    ``K(x, y)`` used in a Fredholm integral equation of the first kind:

                        u(x) = ∫ K(x, y) v(y) dy

    where ``x ∈ [xmin, xmax]`` and ``y ∈ [ymin, ymax]``.  For its SVE to exist,
    the kernel must be square-integrable, for its singular values to decay
    exponentially, it must be smooth.

    Any kernel used to construct an IR basis must provide the value
    ``K(x, y)``, the statistics and the scale ``lambda_``.
    """
    def __call__(self, x, y):
        """Evaluate kernel at point (x, y)

        For given ``x, y``, return the value of ``K(x, y)``. The arguments may
        be numpy arrays, in which case the function shall be evaluated over
        the broadcast arrays.  The result has the precision (dtype) of the
        arguments.
        """
        raise NotImplementedError()

    def sve_hints(self, cutoff):
        """Provide discretisation hints for the SVE routines.

        Advises the SVE routines of discretisation parameters suitable in
        transforming the (infinite) SVE into an (finite) SVD problem.

        See: :class:``SVEHintsBase``.
        """
        raise NotImplementedError()

    @property
    def statistics(self):
        """Statistics: 'F' for fermionic and 'B' for bosonic kernels"""
        raise NotImplementedError()

    @property
    def xrange(self):
        """Tuple ``(xmin, xmax)`` delimiting the range of allowed x values"""
        return -1, 1

    @property
    def yrange(self):
        """Tuple ``(ymin, ymax)`` delimiting the range of allowed y values"""
        return -1, 1

    @property
    def is_centrosymmetric(self):
        """Kernel is centrosymmetric.

        Returns true if and only if ``K(x, y) == K(-x, -y)`` for all values of
        ``x`` and ``y``.  This allows the kernel to be block-diagonalized,
        speeding up the singular value expansion by a factor of 4.  Defaults
        to false.
        """
        return False

    def get_symmetrized(self, sign):
        """Return symmetrized kernel ``K(x, y) + sign * K(x, -y)``.

        By default, this returns a simple wrapper over the current instance
        which naively performs the sum.  You may want to override if this
        to avoid cancellation.
        """
        return ReducedKernel(self, sign)


class SVEHintsBase:
    """Discretization hints for singular value expansion of a given kernel."""
    @property
    def segments_x(self):
        """Segments for piecewise polynomials on the ``x`` axis.

        List of segments on the ``x`` axis for the associated piecewise
        polynomial.  Should reflect the approximate position of roots of a
        high-order singular function in ``x``.
        """
        raise NotImplementedError()

    @property
    def segments_y(self):
        """Segments for piecewise polynomials on the ``y`` axis.

        List of segments on the ``y`` axis for the associated piecewise
        polynomial.  Should reflect the approximate position of roots of a
        high-order singular function in ``y``.
        """
        raise NotImplementedError()


class FermionicKernel(KernelBase):
    """Fermionic analytical continuation kernel.

    In dimensionless variables ``x = 2*τ/β - 1``, ``y = β*ω/Λ``, the fermionic
    integral kernel is a function on ``[-1, 1] x [-1, 1]``::

        K(x, y) == exp(-Λ * x * y/2) / (2 * cosh(Λ * y/2))
    """
    LIMIT = 200.0

    def __init__(self, lambda_):
        if not (lambda_ > 0):
            raise ValueError("kernel cutoff lambda must be positive")
        self.lambda_ = float(lambda_)

    def __call__(self, x, y):
        x, y = _check_domain(self, x, y)
        v = self.lambda_ * y

        # For |v| > LIMIT, the cosh in the denominator is replaced by its
        # leading exponential, which avoids overflowing both numerator and
        # denominator:
        #
        #    k = exp(-v/2 * (x + 1))     for v > LIMIT,
        #      = exp(v/2 * (1 - x))      for v < -LIMIT.
        abs_v = np.abs(v)
        moderate = abs_v <= self.LIMIT
        v_mod = np.where(moderate, v, np.zeros_like(v))
        k_mod = np.exp(-.5 * v_mod * x) / (2 * np.cosh(.5 * v_mod))
        k_asymp = np.exp(-.5 * abs_v * (1 + np.where(v > 0, x, -x)))
        return np.where(moderate, k_mod, k_asymp)

    @property
    def statistics(self): return 'F'

    def sve_hints(self, cutoff):
        return _SVEHintsFermionic(self)

    @property
    def is_centrosymmetric(self):
        return True

    def get_symmetrized(self, sign):
        if sign == -1:
            return _FermionicKernelOdd(self, sign)
        return super().get_symmetrized(sign)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.lambda_!r})"


class _SVEHintsFermionic(SVEHintsBase):
    def __init__(self, kernel):
        self.kernel = kernel

    @property
    def segments_x(self):
        nzeros = max(int(np.round(15 * np.log10(self.kernel.lambda_))), 1)
        diffs = 1./np.cosh(.143 * np.arange(nzeros))
        zeros_pos = diffs.cumsum()
        zeros_pos /= zeros_pos[-1]
        return _grade_edges(
            np.concatenate((-zeros_pos[::-1], [0], zeros_pos)),
            self.kernel.lambda_)

    @property
    def segments_y(self):
        # Zeros around -1 and 1 are distributed asymptotically identical
        leading_diffs = np.array([
            0.01523, 0.03314, 0.04848, 0.05987, 0.06703, 0.07028, 0.07030,
            0.06791, 0.06391, 0.05896, 0.05358, 0.04814, 0.04288, 0.03795,
            0.03342, 0.02932, 0.02565, 0.02239, 0.01951, 0.01699])

        nzeros = max(int(np.round(20 * np.log10(self.kernel.lambda_))), 2)
        if nzeros < 20:
            leading_diffs = leading_diffs[:nzeros]
        diffs = .25 / np.exp(.141 * np.arange(nzeros))
        diffs[:leading_diffs.size] = leading_diffs
        zeros = diffs.cumsum()
        zeros = zeros[:-1] / zeros[-1]
        zeros -= 1
        return np.concatenate(([-1], zeros, [0], -zeros[::-1], [1]))


class BosonicKernel(KernelBase):
    """Bosonic analytical continuation kernel.

    In dimensionless variables ``x = 2*τ/β - 1``, ``y = β*ω/Λ``, the bosonic
    integral kernel is a function on ``[-1, 1] x [-1, 1]``::

        K(x, y) == y * exp(-Λ * x * y/2) / (2 * sinh(Λ * y/2))

    Care has to be taken in evaluating this expression around ``y == 0``.
    """
    LIMIT = 200.0
    TINY = 1e-30

    def __init__(self, lambda_):
        if not (lambda_ > 0):
            raise ValueError("kernel cutoff lambda must be positive")
        self.lambda_ = float(lambda_)

    def __call__(self, x, y):
        x, y = _check_domain(self, x, y)
        v = self.lambda_ * y

        # There are three regimes:
        #
        #   k = exp(-v/2 * x) / lambda         for |v| < TINY,
        #     = y * exp(-v/2 * (x + 1))        for v > LIMIT,
        #     = -y * exp(v/2 * (1 - x))        for v < -LIMIT,
        #
        # where the first one replaces the removable singularity at y == 0
        # and the others avoid overflow in the sinh.
        abs_v = np.abs(v)
        tiny = abs_v < self.TINY
        moderate = np.logical_and(abs_v <= self.LIMIT, np.logical_not(tiny))
        v_mod = np.where(moderate, v, np.ones_like(v))
        k_mod = y * np.exp(-.5 * v_mod * x) / (2 * np.sinh(.5 * v_mod))
        k_asymp = np.abs(y) * np.exp(-.5 * abs_v * (1 + np.where(v > 0, x, -x)))
        v_tiny = np.where(tiny, v, np.zeros_like(v))
        k_tiny = np.exp(-.5 * v_tiny * x) / v.dtype.type(self.lambda_)
        return np.where(tiny, k_tiny, np.where(moderate, k_mod, k_asymp))

    @property
    def statistics(self): return 'B'

    def sve_hints(self, cutoff):
        return _SVEHintsBosonic(self)

    @property
    def is_centrosymmetric(self):
        return True

    def get_symmetrized(self, sign):
        if sign == -1:
            return _BosonicKernelOdd(self, sign)
        return super().get_symmetrized(sign)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.lambda_!r})"


class _SVEHintsBosonic(SVEHintsBase):
    def __init__(self, kernel):
        self.kernel = kernel

    @property
    def segments_x(self):
        # Somewhat less accurate ...
        nzeros = max(int(np.round(15 * np.log10(self.kernel.lambda_))), 1)
        diffs = 1./np.cosh(.18 * np.arange(nzeros))
        zeros_pos = diffs.cumsum()
        zeros_pos /= zeros_pos[-1]
        return _grade_edges(
            np.concatenate((-zeros_pos[::-1], [0], zeros_pos)),
            self.kernel.lambda_)

    @property
    def segments_y(self):
        nzeros = max(int(np.round(20 * np.log10(self.kernel.lambda_))), 20)
        i = np.arange(nzeros)
        diffs = .12/np.exp(.0337 * i * np.log(i+1))
        zeros = diffs.cumsum()
        zeros = zeros[:-1] / zeros[-1]
        zeros -= 1
        return np.concatenate(([-1], zeros, [0], -zeros[::-1], [1]))


class ReducedKernel(KernelBase):
    """Restriction of centrosymmetric kernel to positive interval.

    For a kernel ``K`` on ``[-1, 1] x [-1, 1]`` that is centrosymmetrix, i.e.,
    ``K(x, y) == K(-x, -y)``, it is straight-forward to show that the left/right
    singular vectors can be chosen as either odd or even functions.

    Consequentially, they are singular functions of a reduced kernel ``K_red``
    on ``[0, 1] x [0, 1]`` that is given as either::

        K_red(x, y) == K(x, y) + sign * K(x, -y)

    This kernel is what this class represents.  The full singular functions can
    be reconstructed by (anti-)symmetrically continuing them to the negative
    axis.
    """
    def __init__(self, inner, sign=1):
        if not inner.is_centrosymmetric:
            raise ValueError("inner kernel must be centrosymmetric")
        if np.abs(sign) != 1:
            raise ValueError("sign must square to one")

        self.inner = inner
        self.sign = sign

    def __call__(self, x, y):
        x, y = _check_domain(self, x, y)
        K_plus = self.inner(x, y)
        K_minus = self.inner(x, -y)
        return K_plus + K_minus if self.sign == 1 else K_plus - K_minus

    @property
    def xrange(self):
        _, xmax = self.inner.xrange
        return 0, xmax

    @property
    def yrange(self):
        _, ymax = self.inner.yrange
        return 0, ymax

    @property
    def statistics(self): return self.inner.statistics

    @property
    def lambda_(self): return self.inner.lambda_

    def sve_hints(self, cutoff):
        return _SVEHintsReduced(self.inner.sve_hints(cutoff))

    @property
    def is_centrosymmetric(self):
        """True iff K(x,y) = K(-x, -y)"""
        return False

    def get_symmetrized(self, sign):
        raise RuntimeError("cannot symmetrize twice")


class _SVEHintsReduced(SVEHintsBase):
    def __init__(self, inner_hints):
        self.inner_hints = inner_hints

    @property
    def segments_x(self): return _symm_segments(self.inner_hints.segments_x)

    @property
    def segments_y(self): return _symm_segments(self.inner_hints.segments_y)


class _FermionicKernelOdd(ReducedKernel):
    """Fermionic analytical continuation kernel, odd.

    In dimensionless variables ``x = 2*τ/β - 1``, ``y = β*ω/Λ``, the fermionic
    integral kernel is a function on ``[-1, 1] x [-1, 1]``::

        K(x, y) == -sinh(Λ/2 * x * y) / cosh(Λ/2 * y)
    """
    def __call__(self, x, y):
        result = super().__call__(x, y)

        # For x * y around 0, antisymmetrization introduces cancellation, which
        # reduces the relative precision.  To combat this, we replace the
        # values with the explicit form
        v_half = self.inner.lambda_/2 * y
        xv_half = x * v_half
        use_explicit = np.logical_and(xv_half < 1, v_half < 85)
        xv_half = np.where(use_explicit, xv_half, np.zeros_like(xv_half))
        v_half = np.where(use_explicit, v_half, np.zeros_like(v_half))
        return np.where(use_explicit, -np.sinh(xv_half) / np.cosh(v_half),
                        result)


class _BosonicKernelOdd(ReducedKernel):
    """Bosonic analytical continuation kernel, odd.

    In dimensionless variables ``x = 2*τ/β - 1``, ``y = β*ω/Λ``, the bosonic
    integral kernel is a function on ``[-1, 1] x [-1, 1]``::

            K(x, y) = -y * sinh(Λ/2 * x * y) / sinh(Λ/2 * y)
    """
    def __call__(self, x, y):
        result = super().__call__(x, y)

        # For x * y around 0, antisymmetrization introduces cancellation, which
        # reduces the relative precision.  To combat this, we replace the
        # values with the explicit form
        v_half = self.inner.lambda_/2 * y
        xv_half = x * v_half
        sinh_range = np.logical_and(v_half > 1e-200, v_half < 85)
        use_explicit = np.logical_and(xv_half < 1, sinh_range)
        xv_half = np.where(use_explicit, xv_half, np.zeros_like(xv_half))
        v_half = np.where(use_explicit, v_half, np.ones_like(v_half))
        return np.where(use_explicit, -y * np.sinh(xv_half) / np.sinh(v_half),
                        result)


def matrix_from_gauss(kernel, gauss_x, gauss_y):
    """Compute matrix for kernel from Gauss rule"""
    return kernel(gauss_x.x[:, None], gauss_y.x[None, :])


def _check_domain(kernel, x, y):
    """Check that arguments lie within the correct domain"""
    x = np.asarray(x)
    xmin, xmax = kernel.xrange
    if not (x >= xmin).all() or not (x <= xmax).all():
        raise ValueError("x values not in range [{:g},{:g}]".format(xmin, xmax))

    y = np.asarray(y)
    ymin, ymax = kernel.yrange
    if not (y >= ymin).all() or not (y <= ymax).all():
        raise ValueError("y values not in range [{:g},{:g}]".format(ymin, ymax))
    return x, y


def _symm_segments(x):
    x = np.asarray(x)
    if not np.allclose(x, -x[::-1]):
        raise ValueError("segments must be symmetric")
    xpos = x[x.size // 2:]
    if xpos[0] != 0:
        xpos = np.hstack([0, xpos])
    return xpos


def _grade_edges(knots, lambda_):
    """Halve the outermost segments until they are narrower than 1/(16*Λ).

    Near ``x = ±1``, the singular functions vary on a scale of ``1/Λ``.  The
    graded knots also serve as interpolation grid for data in imaginary time.
    """
    knots = np.asarray(knots, float)
    width = knots[-1] - knots[-2]
    extra = []
    while width > 1 / (16 * lambda_):
        width /= 2
        extra.append(knots[-1] - width)
    extra = np.array(extra)
    return np.unique(np.concatenate((knots, extra, -extra)))
