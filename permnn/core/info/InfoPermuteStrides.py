import logging
log = logging.getLogger('permnn')

import permnn.core as pc

class InfoPermuteStrides:
    """
    Stride tables of permute plan for concrete shape.

    arguments

        shape           TensorShape

        axes_order      TensorAxes  completed order, see InfoPermute

    errors during the construction:

        ValueError                  rank of axes_order does not match the shape

        InternalInvariantViolation

    result

        .output_shape   TensorShape     shape[axes_order]

        .old_strides    tuple of ints   C-order strides of shape

        .new_strides    tuple of ints   C-order strides of output_shape

        .count          int             number of elements
    """

    __slots__ = ['axes_order', 'output_shape', 'old_strides', 'new_strides', 'count', '_gather_idxs']

    def __init__(self, shape, axes_order):
        shape = pc.TensorShape(shape)
        axes_order = pc.TensorAxes(axes_order)
        if shape.rank != axes_order.rank:
            raise ValueError(f'axes {axes_order} must match the shape {shape}')

        self.axes_order = axes_order
        self.output_shape = output_shape = shape[axes_order]
        self.old_strides = shape.strides()
        self.new_strides = output_shape.strides()
        self.count = output_shape.size
        self._gather_idxs = None

        if self.count < 1 or self.count != shape.size:
            raise pc.InternalInvariantViolation(f'Invalid count {self.count} for shape {shape} and output shape {output_shape}.')
        if any(x < 1 for x in self.old_strides + self.new_strides):
            raise pc.InternalInvariantViolation(f'Invalid strides {self.old_strides} {self.new_strides} for shape {shape}.')

        log.debug(f'InfoPermuteStrides: shape {shape} order {axes_order} output_shape {output_shape}')

    def gather_idxs(self):
        """
        returns read-only np.ndarray of int64,
        where [i] is flat input index of flat output index i

        computed on first call
        """
        if self._gather_idxs is None:
            idxs = pc.op.permute_idxs(self.count, self.axes_order, self.old_strides, self.new_strides, self.axes_order.rank)
            idxs.setflags(write=False)
            self._gather_idxs = idxs
        return self._gather_idxs

    def __str__(self): return f'InfoPermuteStrides output_shape:{self.output_shape} old_strides:{self.old_strides} new_strides:{self.new_strides}'
    def __repr__(self): return self.__str__()
