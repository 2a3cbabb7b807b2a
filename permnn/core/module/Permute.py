import logging
log = logging.getLogger('permnn')

import traceback
import tracemalloc
import numpy as np
import permnn as pn
import permnn.core as pc

class Permute(pn.Module):
    """
    Permute module.

    Reorders axes of the input Tensor,
    backward() moves the gradient back to the input order.

        Parameters

        order(None)     Int
                        Iterable of ints
                        None - natural order

                        Can be partial, not mentioned axes are appended in ascending order.
                        Example: (1,0) for input of rank 4 is (1,0,2,3)

        executor(None)  'numpy'
                        'python'
                        None - pn.hint.Permute_default_executor

    If completed order is natural, no data is moved:
    output shares data of input, input shares gradient of output.

    The plan is built on first forward() or explicit setup()/reshape(),
    and rebuilt only when rank, shape or order changes.
    """
    def __init__(self, order=None, executor=None):
        if executor is not None:
            pc.op.get_executor(executor)

        self.order = pc.TensorAxes(order)
        self.executor = executor

        self._plan = None
        self._strides = None
        self._input_shape = None

    def set_order(self, order):
        """
        Set new user order. Plan will be rebuilt on next use.

        raises ConfigurationError
        """
        self.order = pc.TensorAxes(order)
        self._plan = None
        self._strides = None
        self._input_shape = None

    def setup(self, rank):
        """
        Set up the plan for input of rank.

        returns InfoPermute

        raises ConfigurationError
        """
        self._plan = pc.op.build_plan(rank, self.order)
        self._strides = None
        self._input_shape = None
        log.debug(f'{self}: set up for rank {rank}, order {self._plan.axes_order}, need_permute {self._plan.need_permute}')
        return self._plan

    def reshape(self, shape):
        """
        Recompute the plan for input shape.

        returns output TensorShape

        raises ConfigurationError if rank of shape is changed and order does not fit it
        """
        shape = pc.TensorShape(shape)
        if self._plan is None or self._plan.rank != shape.rank:
            self.setup(shape.rank)

        if self._input_shape is None or self._input_shape != shape:
            self._strides = pc.op.compute_strides(shape, self._plan.axes_order)
            self._input_shape = shape
        return self._strides.output_shape

    def forward(self, input_t, output_t=None):
        """
        arguments

            input_t         Tensor

            output_t(None)  Tensor to compute result to.
                            Must match size of output shape, will be resized to output shape.
                            None - new Tensor is created

        returns output Tensor

        raises BufferSizeMismatch
        """
        output_shape = self.reshape(input_t.shape)
        info = self._strides

        if output_t is None:
            if not self._plan.need_permute:
                log.debug(f'{self}: natural order, output borrows data of input')
                return pn.Tensor(output_shape, dtype=input_t.dtype, data=input_t.get_data())
            output_t = pn.Tensor(output_shape, dtype=input_t.dtype)
        else:
            self._check_size(output_t, 'output_t')
            if output_t.shape != output_shape:
                output_t.resize(output_shape)

        if self._plan.need_permute:
            output_t._detach_data()
            bottom = input_t.get_data()
            if output_t.is_sharing_data_with(input_t):
                # output_t owns the storage borrowed by input_t
                bottom = bottom.copy()
            pc.op.permute_by_plan(info, bottom, True, output_t.get_data(), executor=self.executor)
        else:
            log.debug(f'{self}: natural order, output shares data of input')
            output_t.share_data(input_t)

        return output_t

    def backward(self, input_t, output_t, is_add_to_grad=False):
        """
        Propagate gradient of output_t to gradient of input_t.

        arguments

            input_t         Tensor used in forward()

            output_t        Tensor returned by forward()

            is_add_to_grad(False)   add to gradient of input_t instead of overwrite it.
                                    Gradient is never shared in this mode.

        raises BufferSizeMismatch
        """
        self.reshape(input_t.shape)
        info = self._strides
        self._check_size(output_t, 'output_t')

        if self._plan.need_permute:
            input_t._detach_grad()
            top = output_t.get_grad()
            if input_t.is_sharing_grad_with(output_t):
                top = top.copy()
            pc.op.permute_by_plan(info, input_t.get_grad(), False, top, is_add_to_output=is_add_to_grad, executor=self.executor)
        elif is_add_to_grad:
            input_t._detach_grad()
            input_t.get_grad()[...] += output_t.get_grad()
        else:
            log.debug(f'{self}: natural order, input shares gradient of output')
            input_t.share_grad(output_t)

    @property
    def rank(self): return self._plan.rank if self._plan is not None else None
    @property
    def need_permute(self): return self._plan.need_permute if self._plan is not None else None
    @property
    def axes_order(self): return self._plan.axes_order if self._plan is not None else None
    @property
    def output_shape(self): return self._strides.output_shape if self._strides is not None else None
    @property
    def old_strides(self): return self._strides.old_strides if self._strides is not None else None
    @property
    def new_strides(self): return self._strides.new_strides if self._strides is not None else None

    ### INTERNAL METHODS start with _

    def _check_size(self, t, name):
        count = self._strides.count
        if t.shape.size != count:
            raise pc.BufferSizeMismatch(f'{name} must have size {count}, got {t.shape.size}', expected=count, actual=t.shape.size)

    def __str__(self): return f"{self.__class__.__name__} : order:{self.order} "
    def __repr__(self): return self.__str__()

def Permute_test():
    # (1,0) for rank 4
    module = Permute( (1,0) )
    val_n = np.arange(2*3*4*5).reshape( (2,3,4,5) ).astype(np.float32)
    x = pn.Tensor_from_value(val_n)
    y = module(x)

    if module.axes_order != (1,0,2,3):
        raise Exception(f'wrong axes_order {module.axes_order}')
    if not module.need_permute:
        raise Exception('need_permute must be True')
    if y.shape != (3,2,4,5) or module.output_shape != (3,2,4,5):
        raise Exception(f'wrong output shape {y.shape}')
    if module.old_strides != (60,20,5,1) or module.new_strides != (40,20,5,1):
        raise Exception(f'wrong strides {module.old_strides} {module.new_strides}')
    if not all( np.ndarray.flatten( y.np() == np.transpose(val_n, (1,0,2,3)) ) ):
        raise Exception('data is not equal')
    if y.is_sharing_data_with(x):
        raise Exception('output must not share data of input')

    # True transpose of rank 2
    for executor in ['numpy', 'python']:
        module = Permute( (1,0), executor=executor )
        val_n = np.random.randint( 2**8, size=(2,3) ).astype(np.int32)
        x = pn.Tensor_from_value(val_n)
        y = module(x)
        for r in range(2):
            for c in range(3):
                if y.np()[c,r] != val_n[r,c]:
                    raise Exception(f'{executor}: value at {(c,r)} is not equal to input value at {(r,c)}')

        z = Permute( (1,0), executor=executor )(y)
        if not all( np.ndarray.flatten( z.np() == val_n ) ):
            raise Exception(f'{executor}: rank 2 transpose applied twice does not return original')

def Permute_identity_test():
    for order in [ (0,1,2), (), None, (0,), (0,1) ]:
        module = Permute(order)
        x = pn.Tensor_from_value( np.random.randint( 2**8, size=(2,3,4) ).astype(np.float32) )
        y = module(x)

        if module.need_permute:
            raise Exception(f'need_permute must be False for {order}')
        if y.shape != (2,3,4):
            raise Exception(f'wrong output shape {y.shape}')
        if not y.is_sharing_data_with(x):
            raise Exception(f'output must share data of input for {order}')

        # In-place change is visible through both
        y.get_data()[0] = 1000.0
        if x.np()[0,0,0] != 1000.0:
            raise Exception('data change is not visible through input')

        y.get_grad().fill(2.0)
        module.backward(x, y)
        if not x.is_sharing_grad_with(y):
            raise Exception(f'input must share gradient of output for {order}')
        if not x.is_grad_shared() or y.is_grad_shared():
            raise Exception(f'only input must be marked as borrowing gradient for {order}')

        # Same result as running executor with natural order
        out_t = pn.Tensor( (2,3,4) )
        plan = pc.op.build_plan(3, order)
        pc.op.permute_by_plan( pc.op.compute_strides( (2,3,4), plan.axes_order), x.get_data(), True, out_t.get_data() )
        if not all( out_t.get_data() == y.get_data() ):
            raise Exception('sharing is not equal to executor with natural order')

def Permute_config_test():
    for order, rank, text in [ ( (0,0), 2, 'duplicate axis'),
                               ( (3,),  2, 'order out of range'),
                               ( (-1,), 2, 'order out of range'),
                               ( (1,2), 2, 'order out of range'),
                             ]:
        try:
            Permute(order).setup(rank)
            raise Exception(f'ConfigurationError is not raised for {order} rank {rank}')
        except pc.ConfigurationError as e:
            if text not in str(e):
                raise Exception(f'ConfigurationError for {order} has wrong text: {e}')

    for rank in range(1,6):
        for order in [ (rank,), (rank+3,), (-1,), (0,0), tuple(range(rank))+(rank-1,) ]:
            try:
                pc.info.InfoPermute(rank, order)
                raise Exception(f'ConfigurationError is not raised for {order} rank {rank}')
            except pc.ConfigurationError:
                pass

    try:
        pc.info.InfoPermute(2, (3,))
    except pc.ConfigurationError as e:
        if e.axis != 3 or e.position != 0:
            raise Exception('ConfigurationError must contain offending axis and position')

    try:
        Permute(executor='opencl')
        raise Exception('ValueError is not raised for unknown executor')
    except ValueError:
        pass

def Permute_round_trip_test():
    for _ in range(10):
        for rank in range(1, 6):
            for executor in ['numpy', 'python']:
                try:
                    shape = np.random.randint( 5, size=(rank,) )+1
                    order = np.random.permutation(rank)

                    module = Permute(order, executor=executor)

                    # Backward(Forward(X)) == X
                    val_n = np.random.randint( 2**8, size=shape ).astype(np.float32)
                    x = pn.Tensor_from_value(val_n)
                    y = module(x)
                    y.get_grad()[...] = y.get_data()
                    module.backward(x, y)
                    if not all ( np.ndarray.flatten( x.np_grad() == val_n ) ):
                        raise Exception('Backward(Forward(X)) is not equal to X')

                    # Forward(Backward(Y)) == Y
                    y_grad_n = np.random.randint( 2**8, size=tuple(y.shape) ).astype(np.float32)
                    x = pn.Tensor_from_value(val_n)
                    y = module(x)
                    y.get_grad()[...] = y_grad_n.reshape(-1)
                    module.backward(x, y)
                    x2 = pn.Tensor_from_value(x.np_grad())
                    y2 = module(x2)
                    if not all ( np.ndarray.flatten( y2.np() == y_grad_n ) ):
                        raise Exception('Forward(Backward(Y)) is not equal to Y')

                    # Gradient accumulation
                    x.free_grad()
                    x.get_grad().fill(1.0)
                    module.backward(x, y, is_add_to_grad=True)
                    if not all ( np.ndarray.flatten( x.np_grad()-1.0 == x2.np() ) ):
                        raise Exception('gradient is not added')
                except:
                    raise Exception(f"""
shape              : {shape}
order              : {order}
executor           : {executor}
exception          : {traceback.format_exc()}
""")

def Permute_reshape_test():
    module = Permute( (1,0) )
    if module.reshape( (2,3,4,5) ) != (3,2,4,5):
        raise Exception('wrong output shape for rank 4')
    strides = module._strides
    if module.reshape( (2,3,4,5) ) != (3,2,4,5) or module._strides is not strides:
        raise Exception('plan is recomputed for the same shape')

    # Batch size change, same order
    if module.reshape( (7,3,4,5) ) != (3,7,4,5):
        raise Exception('wrong output shape after shape change')
    if module.old_strides != (60,20,5,1) or module.new_strides != (140,20,5,1):
        raise Exception(f'wrong strides after shape change {module.old_strides} {module.new_strides}')

    # Rank change
    if module.reshape( (2,3) ) != (3,2) or module.axes_order != (1,0):
        raise Exception('wrong plan after rank change')

    try:
        Permute( (2,) ).reshape( (2,3) )
        raise Exception('ConfigurationError is not raised after rank change')
    except pc.ConfigurationError:
        pass

    # Output which shares data of input is detached on reconfiguration
    module = Permute( (0,1) )
    val_n = np.random.randint( 2**8, size=(2,3) ).astype(np.float32)
    x = pn.Tensor_from_value(val_n)
    y = module(x)
    module.set_order( (1,0) )
    module(x, output_t=y)
    if y.is_sharing_data_with(x) or y.shape != (3,2):
        raise Exception('output still shares data of input after reconfiguration')
    if not all( np.ndarray.flatten( x.np() == val_n ) ) or \
       not all( np.ndarray.flatten( y.np() == val_n.T ) ):
        raise Exception('data is wrong after reconfiguration')

    try:
        module(x, output_t=pn.Tensor( (4,2) ))
        raise Exception('BufferSizeMismatch is not raised')
    except pc.BufferSizeMismatch:
        pass

    # Output owns the storage borrowed by input
    x = pn.Tensor_from_value(val_n)
    x2 = Permute()(x)
    module(x2, output_t=x)
    if x.shape != (3,2) or not all( np.ndarray.flatten( x.np() == val_n.T ) ):
        raise Exception('input is overwritten while permuting into its owner')

    try:
        module.backward(x, pn.Tensor( (4,2) ))
        raise Exception('BufferSizeMismatch is not raised in backward')
    except pc.BufferSizeMismatch as e:
        if e.expected != 6 or e.actual != 8:
            raise Exception('BufferSizeMismatch has wrong values')

def Permute_identity_alloc_test():
    x = pn.Tensor( (1000,1000) )
    data_nbytes = x.get_data().nbytes
    module = Permute( (0,1) )

    tracemalloc.start()
    try:
        y = module(x)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    if peak >= data_nbytes // 2:
        raise Exception(f'identity forward allocated {peak} bytes for input of {data_nbytes} bytes')
    if not y.is_sharing_data_with(x) or y.shape != (1000,1000):
        raise Exception('output must share data of input')
