import logging
log = logging.getLogger('permnn')

import numpy as np
import permnn.core as pc

class Tensor:
    """
    Represents a Tensor with given shape,
    stored as flat C-order numpy buffer for data and for gradient.

    Arguments

        shape   TensorShape
                tuple of ints
                Scalar () shape is not supported.
                Use (1,) shape for scalar shape.

        dtype(np.float32)   any numpy dtype

        data(None)  flat np.ndarray to use as data storage of the Tensor.
                    Nothing is allocated or copied, Tensor borrows the storage.
                    Size must match size of the shape.

    Storage can be borrowed from other Tensors, see share_data() share_grad().
    Only the borrowing Tensor is marked as shared,
    the Tensor that owns the storage keeps owning it.
    """

    def __init__(self, shape, dtype=np.float32, data=None):
        self.shape = shape = pc.TensorShape(shape)
        if data is None:
            self._data = np.zeros( (shape.size,), dtype=dtype)
            self._data_shared = False
        else:
            if data.size != shape.size:
                raise pc.BufferSizeMismatch(f'Unable to use data of size {data.size} for Tensor of size {shape.size}', expected=shape.size, actual=data.size)
            self._data = data
            self._data_shared = True

        self._grad = None
        self._grad_shared = False

    @property
    def dtype(self): return self._data.dtype

    def np(self):
        """
        Returns numpy view of data with shape of the Tensor
        """
        return self._data.reshape(self.shape.shape)

    def np_grad(self):
        """
        Returns numpy view of gradient with shape of the Tensor
        """
        return self.get_grad().reshape(self.shape.shape)

    def get_data(self):
        """
        Returns flat data buffer
        """
        return self._data

    def has_grad(self): return self._grad is not None
    def get_grad(self):
        """
        Get (or creates zero) flat gradient buffer
        """
        if self._grad is None:
            self._grad = np.zeros_like(self._data)
            self._grad_shared = False
        return self._grad

    def free_grad(self):
        """
        Free gradient of Tensor
        """
        self._grad = None
        self._grad_shared = False

    def fill(self, value):
        """
        Fills whole Tensor with value
        """
        self._data.fill(value)

    def set(self, value):
        """
        Set tensor value

            value   Tensor          copy data from Tensor. Can be with different shape, but should match size of shape.

                    Scalar number   will be treated as (1,) array

                    np.ndarray, list, tuple

        raises BufferSizeMismatch
        """
        if isinstance(value, Tensor):
            value = value.get_data()
        else:
            value = np.asarray(value)

        if value.size != self.shape.size:
            raise pc.BufferSizeMismatch(f'Unable to set value of size {value.size} to Tensor of size {self.shape.size}', expected=self.shape.size, actual=value.size)
        self._data[...] = value.reshape( (-1,) )

    def share_data(self, t):
        """
        Use data storage of Tensor t. Nothing is copied.
        Any later change of the data is visible through both Tensors.

        raises BufferSizeMismatch
        """
        if t.shape.size != self.shape.size:
            raise pc.BufferSizeMismatch(f'Unable to share data of size {t.shape.size} with Tensor of size {self.shape.size}', expected=self.shape.size, actual=t.shape.size)
        self._data = t._data
        self._data_shared = True

    def share_grad(self, t):
        """
        Use gradient storage of Tensor t. Nothing is copied.

        raises BufferSizeMismatch
        """
        if t.shape.size != self.shape.size:
            raise pc.BufferSizeMismatch(f'Unable to share grad of size {t.shape.size} with Tensor of size {self.shape.size}', expected=self.shape.size, actual=t.shape.size)
        self._grad = t.get_grad()
        self._grad_shared = True

    def is_data_shared(self): return self._data_shared
    def is_grad_shared(self): return self._grad_shared
    def is_sharing_data_with(self, t): return self._data is t._data
    def is_sharing_grad_with(self, t): return self._grad is not None and self._grad is t._grad

    def resize(self, shape):
        """
        Set new shape of the Tensor.

        Storage is kept if size is not changed and storage is not shared,
        otherwise new zero storage is allocated.
        """
        shape = pc.TensorShape(shape)
        if shape.size != self.shape.size or self._data_shared:
            self._data = np.zeros( (shape.size,), dtype=self._data.dtype)
            self._data_shared = False
            self.free_grad()
        elif self._grad_shared:
            self.free_grad()
        self.shape = shape

    ### INTERNAL METHODS start with _

    def _detach_data(self):
        """
        Own the data storage: copy of shared data is made.
        """
        if self._data_shared:
            log.warning(f'{self} data storage is shared, detaching.')
            self._data = self._data.copy()
            self._data_shared = False

    def _detach_grad(self):
        """
        Own the gradient storage: copy of shared gradient is made.
        """
        if self._grad_shared:
            log.warning(f'{self} gradient storage is shared, detaching.')
            self._grad = self._grad.copy()
            self._grad_shared = False

    def __str__(self): return f"T {self.shape} {self.dtype}"
    def __repr__(self):
        s = self.__str__() + "\n"
        s += str(self.np()) + "\n"
        s += self.__str__()
        return s

def Tensor_like(t):
    """
    Produces new Tensor with the same shape and dtype as t
    """
    return Tensor(t.shape, dtype=t.dtype)

def Tensor_from_value(value, dtype=None):
    """
    Produces new Tensor with the same shape as value
    and set the value to the Tensor immediately.

    arguments

     value      Tensor
                int, float, numpy scalar
                list, tuple
                np.ndarray

     dtype(None)    dtype of the Tensor. None - dtype of the value
    """
    if isinstance(value, Tensor):
        value = value.np()
    elif isinstance(value, (list, tuple, int, float, np.generic) ):
        value = np.array(value)
    elif not isinstance(value, np.ndarray):
        raise ValueError(f'Unsupported value {value} ({value.__class__})')

    if dtype is None:
        dtype = value.dtype
    t = Tensor(value.shape, dtype=dtype)
    t.set(value)
    return t
