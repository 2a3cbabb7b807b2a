from .InfoPermute import InfoPermute
from .InfoPermuteStrides import InfoPermuteStrides
