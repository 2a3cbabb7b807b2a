from .errors import (PermuteError,
                     ConfigurationError,
                     InternalInvariantViolation,
                     BufferSizeMismatch)
from .Cacheton import Cacheton

from .TensorAxes import TensorAxes
from .TensorShape import TensorShape
