"""Bloch simulation primitives and propagation operators."""
from . import _abstract_op
from . import _dynamics
from . import _jacobian
from . import _linear_system
from . import _mcconnell
from . import _propagator_op
from . import _rotation
from . import _utils

from ._abstract_op import *  # noqa
from ._dynamics import *  # noqa
from ._jacobian import *  # noqa
from ._linear_system import *  # noqa
from ._mcconnell import *  # noqa
from ._propagator_op import *  # noqa
from ._rotation import *  # noqa
from ._utils import *  # noqa

__all__ = []
__all__.extend(_abstract_op.__all__)
__all__.extend(_dynamics.__all__)
__all__.extend(_jacobian.__all__)
__all__.extend(_linear_system.__all__)
__all__.extend(_mcconnell.__all__)
__all__.extend(_propagator_op.__all__)
__all__.extend(_rotation.__all__)
__all__.extend(_utils.__all__)
