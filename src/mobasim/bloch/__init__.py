"""Sub-package containing Bloch simulation routines.

Include closed form and matrix exponential propagators for the Bloch equations,
their analytic Jacobians, sensitivity-augmented linear systems for R1, R2 and B1
and the Bloch-McConnell model for chemically exchanging pools [1].

References
----------
[1] McConnell, H.M. (1958),
Reaction Rates by Nuclear Magnetic Resonance.
J. Chem. Phys., 28: 430-431. https://doi.org/10.1063/1.1744152

"""

from . import model as _model
from . import ops as _ops

from .model import *  # noqa
from .ops import *  # noqa

__all__ = []
__all__.extend(_model.__all__)
__all__.extend(_ops.__all__)
