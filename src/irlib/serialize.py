# Copyright (C) 2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others
# SPDX-License-Identifier: MIT
import os

import numpy as np

from . import __version__
from . import basis as _basis
from . import kernel
from . import poly
from . import svd
from . import sve


def save(file, basis):
    """Write IR basis to text file or file-like object"""
    if isinstance(file, (str, os.PathLike)):
        with open(file, 'w') as f:
            TextFormat().write_basis(f, basis)
    else:
        TextFormat().write_basis(file, basis)


def load(file):
    """Read IR basis written by :func:`save` from file or file-like object"""
    if isinstance(file, (str, os.PathLike)):
        with open(file, 'r') as f:
            return TextFormat().read_basis(f)
    return TextFormat().read_basis(file)


class TextFormat:
    """Plain text representation of an IR basis.

    The file starts with a set of header lines of the form ``## Key: value``,
    followed by a set of records, each introduced by a line naming it:

      - ``s``: the singular values, one per line;
      - ``u l``: the coefficients of the ``l``-th left singular function,
        one line per segment and lowest power first;
      - ``v l``: same for the ``l``-th right singular function.

    Numbers are written with ``repr``, so they are read back exactly.
    """
    KERNELS = {
        'FermionicKernel': kernel.FermionicKernel,
        'BosonicKernel': kernel.BosonicKernel,
        }

    def write_kernel(self, f, K):
        name = K.__class__.__name__
        if name not in self.KERNELS:
            raise ValueError(f"Unknown kernel: {K!r}")
        f.write(f"## Kernel: {name}; lambda={float(K.lambda_)!r}\n")

    def write_basis(self, f, basis):
        result = basis.sve_result
        nl = result.Nl or basis.u[0].order + 1
        n_gauss = result.n_gauss or 12
        work_dtype = result.work_dtype or float

        f.write("## DATA FOR INTERMEDIATE REPRESENTATION\n")
        f.write("## Description:\n"
                "## \tData for the intermediate representation, which is\n"
                "## \tthe truncated singular value expansion of an integral\n"
                "## \tkernel.  What follows are first the singular values,\n"
                "## \tthen the coefficients of the left singular functions,\n"
                "## \tthen the ones of the right singular functions.\n")
        self.write_kernel(f, basis.kernel)
        f.write(f"## Statistics: {basis.statistics}\n")
        f.write(f"## BasisSize: {basis.size}\n")
        f.write(f"## WorkDtype: {np.dtype(work_dtype).name}\n")
        f.write(f"## LegendreOrder: {nl}\n")
        f.write(f"## GaussOrder: {n_gauss}\n")
        f.write(f"## PiecesLeft: {_format_floats(basis.u[0].knots, ', ')}\n")
        f.write(f"## PiecesRight: {_format_floats(basis.v[0].knots, ', ')}\n")
        f.write(f"## Generator: irlib; version={__version__}\n")

        f.write("s\n")
        for sl in basis.s:
            f.write(_format_floats([sl]) + "\n")
        for name, funcs in (('u', basis.u), ('v', basis.v)):
            for l, func in enumerate(funcs):
                f.write(f"{name} {l}\n")
                for row in func.data:
                    f.write(_format_floats(row) + "\n")

    def read_basis(self, f):
        header = {}
        records = {}
        current = None
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            if line.startswith('##'):
                key, sep, value = line[2:].partition(':')
                if sep:
                    header[key.strip()] = value.strip()
                continue

            fields = line.split()
            if fields[0] in ('s', 'u', 'v'):
                current = tuple(fields[:1]) + tuple(map(int, fields[1:]))
                records[current] = []
            elif current is None:
                raise ValueError(f"line {lineno}: data outside of record")
            else:
                records[current].append([float(x) for x in fields])

        K = self.read_kernel(_get_header(header, 'Kernel'))
        if K.statistics != _get_header(header, 'Statistics'):
            raise ValueError("statistics do not match kernel")
        size = int(_get_header(header, 'BasisSize'))
        knots_x = _parse_floats(_get_header(header, 'PiecesLeft'))
        knots_y = _parse_floats(_get_header(header, 'PiecesRight'))

        s = np.array(records.get(('s',), []), float).ravel()
        try:
            u = [poly.PiecewisePoly(records['u', l], knots_x)
                 for l in range(size)]
            v = [poly.PiecewisePoly(records['v', l], knots_y)
                 for l in range(size)]
        except KeyError as e:
            raise ValueError(f"missing record for basis function {e}") from e
        if s.size != size:
            raise ValueError("number of singular values does not match "
                             "basis size")

        n_gauss = int(_get_header(header, 'GaussOrder'))
        result = sve.SVEResult(
                    u, s, v, K, Nl=int(_get_header(header, 'LegendreOrder')),
                    n_gauss=n_gauss,
                    work_dtype=_parse_dtype(_get_header(header, 'WorkDtype')))
        return _basis.IRBasisSet(K, quadrature_order=n_gauss,
                                 sve_result=result)

    def read_kernel(self, value):
        name, _, params = value.partition(';')
        try:
            kernel_type = self.KERNELS[name.strip()]
        except KeyError:
            raise ValueError(f"Unknown kernel: {name}") from None
        key, _, lambda_ = params.partition('=')
        if key.strip() != 'lambda':
            raise ValueError(f"Invalid kernel parameters: {params}")
        return kernel_type(float(lambda_))


def _format_floats(values, sep=' '):
    return sep.join(repr(float(x)) for x in values)


def _parse_floats(value):
    return np.array([float(x) for x in value.split(',')])


def _get_header(header, key):
    try:
        return header[key]
    except KeyError:
        raise ValueError(f"header field {key} is missing") from None


def _parse_dtype(name):
    if svd._ddouble is not None and name == np.dtype(svd._ddouble).name:
        return svd._ddouble
    try:
        return np.dtype(name).type
    except TypeError:
        # Extended precision not available here
        return name
