# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import numpy as np


class DomainError(ValueError):
    """Argument lies outside the domain of a function"""


def check_range(x, xmin, xmax):
    """Checks each element is in range [xmin, xmax]"""
    x = np.asarray(x)
    if not (x >= xmin).all():
        raise DomainError(f"Some x violate lower bound {xmin}")
    if not (x <= xmax).all():
        raise DomainError(f"Some x violate upper bound {xmax}")
    return x


def check_index(l, size):
    """Checks that ``l`` is a valid index into a basis of given size"""
    if int(l) != l:
        raise IndexError("basis index must be integer")
    l = int(l)
    if not 0 <= l < size:
        raise IndexError(f"Index l={l} is out of range [0, {size})")
    return l


def check_frequencies(n):
    """Checks that ``n`` are non-negative integers in ascending order.

    This is the convention for the Matsubara indices of the frequency
    transforms: negative frequencies follow from the symmetry of the basis
    functions and are not computed.
    """
    n = np.asarray(n)
    if n.ndim != 1:
        raise ValueError("frequency indices must be a one-dimensional list")
    if not np.issubdtype(n.dtype, np.integer):
        nfloat = n
        n = nfloat.astype(int)
        if not (n == nfloat).all():
            raise ValueError("frequency indices must be integer")
    if not (n >= 0).all():
        raise ValueError("frequency indices must be non-negative")
    if not (n[1:] >= n[:-1]).all():
        raise ValueError("frequency indices must be in ascending order")
    return n


def check_svd_result(svd_result, matrix_shape=None):
    """Checks that argument is a valid SVD triple (u, s, v)"""
    u, s, v = map(np.asarray, svd_result)
    m_u, k_u = u.shape
    k_s, = s.shape
    n_v, k_v = v.shape
    if k_u != k_s or k_s != k_v:
        raise ValueError("shape mismatch between SVD elements:"
                         f"({m_u}, {k_u}) x ({k_s}) x ({n_v}, {k_v})")
    if matrix_shape is not None:
        m, n = matrix_shape
        if m_u != m or n_v != n:
            raise ValueError(f"shape mismatch between SVD ({m_u}, {n_v}) "
                             f"and matrix ({m}, {n})")
    return u, s, v
