"""
Intermediate representation (IR) basis for many-body propagators
=================================================================

This library constructs the intermediate representation of correlation
functions, i.e., the truncated singular value expansion of the analytic
continuation kernel, and the associated transforms.  It provides:

 - on-the-fly computation of basis functions for arbitrary cutoff Λ
 - fermionic and bosonic kernels, or any user-supplied kernel
 - transformation matrices to Matsubara frequencies
 - a plain text format for storing precomputed bases
"""
__copyright__ = "2020-2022 Markus Wallerberger, Hiroshi Shinaoka, and others"
__license__ = "MIT"
__version__ = "0.1.0"

from ._util import DomainError
from .kernel import FermionicKernel, BosonicKernel
from .poly import PiecewisePoly
from .sve import compute as compute_sve, generate_ir_basis, SVEResult
from .basis import IRBasisSet, basis_f, basis_b
from . import serialize
