import logging
log = logging.getLogger('permnn')

from numbers import Integral

import permnn.core as pc

class InfoPermute:
    """
    Permute plan.

    arguments

        rank            int >= 1, number of axes of the input

        order           TensorAxes
                        Int
                        Iterable of ints
                        None

                        Axes of the input in order of the output.
                        Can be partial, not mentioned axes
                        are appended in ascending order.

                        Example: (1,0) for rank 4 is (1,0,2,3)

    errors during the construction:

        ConfigurationError

    result

        .rank           int

        .axes_order     TensorAxes  completed order of len rank

        .need_permute   bool        False if order is natural and data can be shared
    """

    __slots__ = ['rank', 'axes_order', 'need_permute']

    @staticmethod
    def check_rank(rank):
        """
        returns rank as int

        raises ConfigurationError if rank is not int >= 1
        """
        if isinstance(rank, bool) or not isinstance(rank, Integral) or rank < 1:
            raise pc.ConfigurationError(f'rank must be int >= 1, got {rank!r}')
        return int(rank)

    def __init__(self, rank, order):
        rank = InfoPermute.check_rank(rank)

        axes_order = pc.TensorAxes(order, rank=rank).completed(rank)

        if axes_order.rank != rank or \
           sorted(axes_order) != list(range(rank)):
            raise pc.InternalInvariantViolation(f'Completed order {axes_order} is not a permutation of {rank} axes.')

        self.rank = rank
        self.axes_order = axes_order
        # As long as one axis differs from natural order, data must be moved.
        self.need_permute = not axes_order.is_identity()

        log.debug(f'InfoPermute: rank {rank} order {axes_order} need_permute {self.need_permute}')

    def __str__(self): return f'InfoPermute rank:{self.rank} axes_order:{self.axes_order} need_permute:{self.need_permute}'
    def __repr__(self): return self.__str__()
