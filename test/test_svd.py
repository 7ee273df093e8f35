# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import numpy as np
import pytest

from irlib import svd


@pytest.mark.parametrize("shape", [(30, 20), (20, 30)])
@pytest.mark.parametrize("strategy", ['default', 'accurate'])
def test_decomposition(shape, strategy):
    rng = np.random.default_rng(4711)
    a = rng.standard_normal(shape)
    u, s, v = svd.compute(a, strategy)

    k = min(shape)
    assert u.shape == (shape[0], k)
    assert v.shape == (shape[1], k)
    assert (s[1:] <= s[:-1]).all()
    np.testing.assert_allclose((u * s) @ v.T, a, atol=1e-12, rtol=0)
    np.testing.assert_allclose(u.T @ u, np.eye(k), atol=1e-12, rtol=0)
    np.testing.assert_allclose(v.T @ v, np.eye(k), atol=1e-12, rtol=0)


def test_invalid_strategy():
    with pytest.raises(ValueError):
        svd.compute(np.eye(3), 'fast')
