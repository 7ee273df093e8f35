# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
#
# This file is available from EVERY test in the directory.  This is why
# we use it to compute the bases ONCE.
import pytest
import irlib


@pytest.fixture(scope="package")
def basis_high_t():
    """Bases for Lambda = 0.1, which are close to Legendre polynomials"""
    print("Precomputing high-temperature bases ...")
    return {
        'F': irlib.basis_f(0.1),
        'B': irlib.basis_b(0.1),
        }


@pytest.fixture(scope="package")
def basis_f300():
    """Fermionic basis for Lambda = 300"""
    print("Precomputing fermionic basis for Lambda = 300 ...")
    return irlib.basis_f(300.0, 501)


@pytest.fixture(scope="package")
def basis_b42():
    """Bosonic basis for Lambda = 42"""
    print("Precomputing bosonic basis for Lambda = 42 ...")
    return irlib.basis_b(42.0)
