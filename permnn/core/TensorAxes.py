from collections.abc import Iterable
from numbers import Integral

from .errors import ConfigurationError

class TensorAxes(Iterable):
    """
    Constructs TensorAxes from user argument

    arguments

     axes       TensorAxes
                Int
                Iterable of ints
                None        empty axes

     rank(None)     if provided, every axis must be in range [0, rank)

    can raise ConfigurationError during the construction

    TensorAxes supports:

     A+B : concat A_axes with B_axes

     A-B : removes B_axes from A_axes

    """

    __slots__ = ['axes','rank','_inversed']

    def __init__(self, axes, rank=None):
        if isinstance(axes, TensorAxes):
            axes = axes.axes
        elif axes is None:
            axes = ()
        elif not isinstance(axes, Iterable):
            axes = (axes,)
        axes = tuple(axes)

        valid_axes = []
        for i, x in enumerate(axes):
            if isinstance(x, bool) or not isinstance(x, Integral):
                raise ConfigurationError(f'Incorrect value {x!r} at position {i} in axes {axes}', axis=x, position=i)
            x = int(x)
            if rank is not None and (x < 0 or x >= rank):
                raise ConfigurationError(f'order out of range: axis {x} at position {i} must be in [0, {rank})', axis=x, position=i)
            if x in valid_axes:
                raise ConfigurationError(f'duplicate axis {x} at position {i} in axes {axes}', axis=x, position=i)
            valid_axes.append(x)

        self.axes = tuple(valid_axes)
        self.rank = len(self.axes)
        self._inversed = None

    @staticmethod
    def arange(rank):
        """
        Returns natural axes order.

         Example (0,1,2) for rank 3
        """
        return TensorAxes(range(rank))

    def completed(self, rank):
        """
        Returns axes extended to exactly 'rank' axes.
        Axes that are not mentioned are appended in ascending order.

         Example: (1,0) for rank 4 returns (1,0,2,3)

        raises ConfigurationError if any axis is out of [0, rank)
        """
        axes = TensorAxes(self, rank=rank)
        return axes + (TensorAxes.arange(rank) - axes)

    def is_identity(self):
        """
        returns True if axes are (0,1,...,rank-1)
        """
        return self.axes == tuple(range(self.rank))

    def inversed(self):
        """
        Returns inversed axes order

        Example:

         for (0,2,3,1)  returns (0,3,1,2)
        """
        if self._inversed is None:
            x = { axis:i for i,axis in enumerate(self.axes) }
            t = []
            for i in range(self.rank):
                axis = x.get(i, None)
                if axis is None:
                    raise ValueError(f'axes {self.axes} are inconsistent to do inverse order.')
                t.append(axis)
            self._inversed = TensorAxes(t)

        return self._inversed

    def __hash__(self): return self.axes.__hash__()
    def __eq__(self, other):
        if isinstance(other, TensorAxes):
            return self.axes == other.axes
        elif isinstance(other, Iterable):
            return self.axes == tuple(other)
        return False
    def __iter__(self): return self.axes.__iter__()
    def __len__(self): return self.rank
    def __getitem__(self,key):
        if isinstance(key, slice):
            return TensorAxes(self.axes[key])
        return self.axes[key]

    def __add__(self, o):
        if isinstance(o, Iterable):
            return TensorAxes( self.axes + tuple(o) )
        else:
            raise ValueError(f'unable to use type {o.__class__} in TensorAxes append')

    def __sub__(self, o):
        if isinstance(o, Iterable):
            o_axes = tuple(o)
            return TensorAxes( axis for axis in self.axes if axis not in o_axes )
        else:
            raise ValueError(f'unable to use type {o.__class__} in TensorAxes substraction')

    def __str__(self):  return str(self.axes)
    def __repr__(self): return 'TensorAxes' + self.__str__()
