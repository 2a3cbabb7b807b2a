from collections.abc import Iterable
from .TensorAxes import TensorAxes

class TensorShape(Iterable):
    """
    Constructs valid shape from user argument

    arguments

     shape      TensorShape
                Int
                Iterable of ints

    can raise ValueError during the construction
    """

    __slots__ = ['shape','size','rank']

    def __init__(self, shape):
        if isinstance(shape, TensorShape):
            self.shape = shape.shape
            self.size = shape.size
            self.rank = shape.rank
        else:
            if isinstance(shape, (int,float) ):
                shape = (int(shape),)

            if isinstance(shape, Iterable):
                size = 1
                valid_shape = []
                for x in shape:
                    if x is None:
                        raise ValueError(f'Incorrent value {x} in shape {shape}')
                    x = int(x)
                    if x < 1:
                        raise ValueError(f'Incorrent value {x} in shape {shape}')
                    valid_shape.append(x)
                    size *= x # Faster than np.prod()

                self.shape = tuple(valid_shape)
                self.rank = len(self.shape)
                if self.rank == 0:
                    # Force (1,) shape for scalar shape
                    self.rank = 1
                    self.shape = (1,)
                self.size = size
            else:
                raise ValueError('Invalid type to create TensorShape')

    def strides(self):
        """
        Returns tuple of C-order strides in elements.
        Last axis varies fastest.

         Example (12,4,1) for shape (2,3,4)
        """
        strides = [1]*self.rank
        for i in range(self.rank-2, -1, -1):
            strides[i] = strides[i+1] * self.shape[i+1]
        return tuple(strides)

    def transpose_by_axes(self, axes):
        """
        Same as TensorShape[axes]

        Returns TensorShape transposed by axes.

         axes       TensorAxes
                    Iterable(list,tuple,set,generator)
        """
        return TensorShape(self.shape[axis] for axis in TensorAxes(axes, rank=self.rank) )

    def __hash__(self): return self.shape.__hash__()
    def __eq__(self, other):
        if isinstance(other, TensorShape):
            return self.shape == other.shape
        elif isinstance(other, Iterable):
            return self.shape == tuple(other)
        return False
    def __iter__(self): return self.shape.__iter__()
    def __len__(self): return len(self.shape)
    def __getitem__(self,key):
        if isinstance(key, Iterable):
            return self.transpose_by_axes(key)
        elif isinstance(key, slice):
            return TensorShape(self.shape[key])

        return self.shape[key]

    def __str__(self):  return str(self.shape)
    def __repr__(self): return 'TensorShape' + self.__str__()
