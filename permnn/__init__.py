"""
Welcome to permnn source code.

import permnn as pn  - is all user need.

Classes and Modules(Layers) are upper case
operators are lower case
Plans in 'pn.core.info.' namespace
Raw executors in 'pn.core.op.' namespace
Defaults in 'pn.hint.' namespace
"""
import permnn.core

from permnn.core.errors import (PermuteError,
                                ConfigurationError,
                                InternalInvariantViolation,
                                BufferSizeMismatch)

from permnn.core.Tensor import (Tensor,
                                Tensor_like,
                                Tensor_from_value)

import permnn.core.info
import permnn.core.op

import permnn.core.hint as hint

# Operators
from permnn.core.op.permute import (build_plan,
                                    compute_strides,
                                    permute_op as permute)

# Modules
from permnn.core.module.Module import Module
from permnn.core.module.Permute import Permute

# Misc
import permnn.core.test as test

def cleanup():
    """
    Frees cached plans.
    """
    permnn.core.Cacheton._cleanup()
