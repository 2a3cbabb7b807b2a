import traceback
import tracemalloc
import numpy as np

import permnn as pn
import permnn.core as pc

def permute_index(i, order, old_strides, new_strides, rank):
    """
    Returns flat input index of flat output index i.

    i is decomposed to output coordinates by new_strides, most significant axis first.
    Coordinate of output axis j is weighted by stride of input axis order[j].
    """
    old_idx = 0
    for j in range(rank):
        old_idx += (i // new_strides[j]) * old_strides[order[j]]
        i %= new_strides[j]
    return old_idx

def permute_idxs(count, order, old_strides, new_strides, rank):
    """
    Same as permute_index() for all output indexes [0, count)

    returns np.ndarray of int64 with shape (count,)
    """
    idx = np.arange(count, dtype=np.int64)
    old_idx = np.zeros( (count,), dtype=np.int64)
    for j in range(rank):
        old_idx += (idx // new_strides[j]) * old_strides[order[j]]
        idx %= new_strides[j]
    return old_idx

def permute(count, bottom, forward, order, old_strides, new_strides, rank, top, is_add_to_output=False):
    """
    Permute executor, element by element.

    arguments

        count               number of elements

        bottom              flat buffer of input

        forward             True  - top[i] = bottom[old_idx]
                            False - bottom[old_idx] = top[i]

        order, old_strides, new_strides, rank
                            plan, see InfoPermute, InfoPermuteStrides

        top                 flat buffer of output

        is_add_to_output    add to destination buffer instead of assign

    Buffers are any indexable mutable sequences.
    Only destination buffer is changed, nothing is allocated.
    """
    for i in range(count):
        old_idx = permute_index(i, order, old_strides, new_strides, rank)
        if forward:
            if is_add_to_output:
                top[i] += bottom[old_idx]
            else:
                top[i] = bottom[old_idx]
        else:
            if is_add_to_output:
                bottom[old_idx] += top[i]
            else:
                bottom[old_idx] = top[i]

def permute_np(count, bottom, forward, order, old_strides, new_strides, rank, top, is_add_to_output=False, idxs=None):
    """
    Permute executor, vectorized over all elements.

    Same arguments as permute(), buffers must be flat np.ndarray.

        idxs(None)  result of permute_idxs() for this plan,
                    for example InfoPermuteStrides.gather_idxs()

    Every output index is a distinct input index,
    so every destination element is written exactly once.
    Forward assign does not allocate a temporary of count elements.
    """
    if idxs is None:
        idxs = permute_idxs(count, order, old_strides, new_strides, rank)

    if forward:
        if is_add_to_output:
            top[:count] += bottom[idxs]
        else:
            # indexes are always in range, mode='clip' writes straight to out
            np.take(bottom, idxs, out=top[:count], mode='clip')
    else:
        if is_add_to_output:
            bottom[idxs] += top[:count]
        else:
            bottom[idxs] = top[:count]

_executors = ['numpy', 'python']

def get_executor(executor=None):
    """
    Returns validated executor name.

        executor(None)  'numpy'
                        'python'
                        None - pn.hint.Permute_default_executor
    """
    if executor is None:
        executor = pn.hint.Permute_default_executor
    if executor not in _executors:
        raise ValueError(f'Unknown executor {executor!r}, available: {_executors}')
    return executor

def permute_by_plan(info, bottom, forward, top, is_add_to_output=False, executor=None):
    """
    Runs executor on flat buffers with InfoPermuteStrides plan.
    """
    executor = get_executor(executor)
    args = (info.count, bottom, forward, info.axes_order, info.old_strides, info.new_strides, info.axes_order.rank, top)
    if executor == 'numpy':
        permute_np(*args, is_add_to_output=is_add_to_output, idxs=info.gather_idxs())
    else:
        permute(*args, is_add_to_output=is_add_to_output)

def build_plan(rank, order):
    """
    Returns InfoPermute for rank and user order.
    Cached if pn.hint.Permute_use_plan_cache

    raises ConfigurationError
    """
    rank = pc.info.InfoPermute.check_rank(rank)
    if pn.hint.Permute_use_plan_cache:
        return pc.Cacheton.get(pc.info.InfoPermute, rank, pc.TensorAxes(order))
    return pc.info.InfoPermute(rank, order)

def compute_strides(shape, axes_order):
    """
    Returns InfoPermuteStrides for shape and completed axes_order.
    Cached if pn.hint.Permute_use_plan_cache,
    only the last shape is kept per axes_order.
    """
    shape, axes_order = pc.TensorShape(shape), pc.TensorAxes(axes_order)
    if pn.hint.Permute_use_plan_cache:
        return pc.Cacheton.get_slot(pc.info.InfoPermuteStrides, axes_order, shape, axes_order)
    return pc.info.InfoPermuteStrides(shape, axes_order)

def permute_op(input_t, order, output_t=None, is_add_to_output=False, executor=None):
    """
    Permute operator

        order       Int
                    Iterable of ints
                    None
                    can be partial, rest axes are appended in ascending order

    arguments:

        output_t            compute result to this Tensor.
                            Tensor may be with different shape, but should match total size.

        is_add_to_output    add result to output_t if output_t is set.

        executor(None)      'numpy', 'python'

    If order changes nothing and output_t is not set,
    result Tensor shares the storage of input_t.

    raises ConfigurationError, BufferSizeMismatch
    """
    is_add_to_output = False if output_t is None else is_add_to_output

    plan = build_plan(input_t.shape.rank, order)
    info = compute_strides(input_t.shape, plan.axes_order)

    if output_t is None:
        if not plan.need_permute:
            return pn.Tensor(info.output_shape, dtype=input_t.dtype, data=input_t.get_data())
        output_t = pn.Tensor(info.output_shape, dtype=input_t.dtype)
    elif output_t.shape.size != info.count:
        raise pc.BufferSizeMismatch(f'output_t must have size {info.count}', expected=info.count, actual=output_t.shape.size)
    elif output_t.is_sharing_data_with(input_t):
        output_t._detach_data()

    if plan.need_permute:
        bottom = input_t.get_data()
        if output_t.is_sharing_data_with(input_t):
            # output_t owns the storage borrowed by input_t
            bottom = bottom.copy()
        permute_by_plan(info, bottom, True, output_t.get_data(), is_add_to_output=is_add_to_output, executor=executor)
    elif is_add_to_output:
        output_t.get_data()[...] += input_t.get_data()
    else:
        output_t.set(input_t)

    return output_t

def permute_index_test():
    for _ in range(10):
        for rank in range(1, 6):
            shape = np.random.randint( 5, size=(rank,) )+1
            order = np.random.permutation(rank)

            plan = build_plan(rank, order)
            info = compute_strides(shape, plan.axes_order)

            idxs = [ permute_index(i, info.axes_order, info.old_strides, info.new_strides, rank) for i in range(info.count) ]
            if sorted(idxs) != list(range(info.count)):
                raise Exception(f'index mapping is not a bijection for {shape} {order}')

            if not all( info.gather_idxs() == np.array(idxs, np.int64) ):
                raise Exception(f'gather_idxs are not equal to permute_index for {shape} {order}')

def permute_executors_test():
    for _ in range(10):
        for rank in range(1, 6):
            shape = np.random.randint( 5, size=(rank,) )+1
            order = np.random.permutation(rank)
            plan = build_plan(rank, order)
            info = compute_strides(shape, plan.axes_order)
            args = (info.axes_order, info.old_strides, info.new_strides, rank)

            bottom = np.random.randint( 2**16, size=(info.count,) ).astype(np.int32)
            top_py = [0]*info.count
            top_np = np.zeros_like(bottom)
            permute(info.count, list(bottom), True, *args, top_py)
            permute_np(info.count, bottom, True, *args, top_np)
            if top_py != top_np.tolist():
                raise Exception(f'forward of executors is not equal {shape} {order}')

            top_diff = np.random.randint( 2**16, size=(info.count,) ).astype(np.int32)
            bottom_py = [1]*info.count
            bottom_np = np.ones_like(top_diff)
            permute(info.count, bottom_py, False, *args, list(top_diff), is_add_to_output=True)
            permute_np(info.count, bottom_np, False, *args, top_diff, is_add_to_output=True)
            if bottom_py != bottom_np.tolist():
                raise Exception(f'backward of executors is not equal {shape} {order}')

            if not all( bottom_np-1 == np.transpose(top_diff.reshape(info.output_shape.shape), tuple(plan.axes_order.inversed())).reshape(-1) ):
                raise Exception(f'backward is not inverse transpose {shape} {order}')

    try:
        get_executor('opencl')
        raise Exception('ValueError is not raised for unknown executor')
    except ValueError:
        pass

def permute_test():
    for _ in range(10):
        for rank in range(1, 6):
            for executor in _executors:
                try:
                    shape = np.random.randint( 6, size=(rank,) )+1
                    order = np.random.permutation(rank)
                    # partial order
                    order = order[:np.random.randint(rank+1)]
                    full_order = pc.TensorAxes(order).completed(rank)

                    val_n = np.random.randint( 2**8, size=shape ).astype(np.float32)
                    permuted_n = np.transpose(val_n, tuple(full_order))
                    val_t = pn.Tensor_from_value(val_n)
                    permuted_t = pn.permute(val_t, order, executor=executor)

                    if permuted_n.shape != tuple(permuted_t.shape):
                        raise Exception('shape is not equal')
                    if not all ( np.ndarray.flatten( permuted_t.np() == permuted_n ) ):
                        raise Exception(f'data is not equal')

                    if full_order.is_identity() != permuted_t.is_sharing_data_with(val_t):
                        raise Exception(f'data sharing is wrong')

                    # Add to existing output
                    out_t = pn.Tensor(permuted_t.shape)
                    out_t.fill(1.0)
                    pn.permute(val_t, order, output_t=out_t, is_add_to_output=True, executor=executor)
                    if not all ( np.ndarray.flatten( out_t.np()-1.0 == permuted_n ) ):
                        raise Exception(f'data is not added to output')
                except:
                    raise Exception(f"""
shape              : {shape}
order              : {order}
executor           : {executor}
exception          : {traceback.format_exc()}
""")

    val_t = pn.Tensor( (2,3,4) )
    try:
        pn.permute(val_t, (1,0), output_t=pn.Tensor( (3,2,5) ) )
        raise Exception('BufferSizeMismatch is not raised')
    except pc.BufferSizeMismatch as e:
        if e.expected != 24 or e.actual != 30:
            raise Exception('BufferSizeMismatch has wrong values')

def permute_np_inplace_test():
    plan = build_plan(3, (2,0,1) )
    info = compute_strides( (64,64,64), plan.axes_order)
    args = (info.axes_order, info.old_strides, info.new_strides, 3)
    idxs = info.gather_idxs()

    bottom = np.random.randint( 2**8, size=(info.count,) ).astype(np.float32)
    top = np.zeros_like(bottom)

    tracemalloc.start()
    try:
        permute_np(info.count, bottom, True, *args, top, idxs=idxs)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    if peak >= top.nbytes // 4:
        raise Exception(f'forward allocated {peak} bytes for output of {top.nbytes} bytes')
    if not all( top == np.transpose(bottom.reshape( (64,64,64) ), (2,0,1)).reshape(-1) ):
        raise Exception('data is not equal')

def permute_identity_alloc_test():
    val_t = pn.Tensor( (1000,1000) )
    data_nbytes = val_t.get_data().nbytes

    tracemalloc.start()
    try:
        y = pn.permute(val_t, (0,1) )
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    if peak >= data_nbytes // 2:
        raise Exception(f'identity permute allocated {peak} bytes for input of {data_nbytes} bytes')
    if not y.is_sharing_data_with(val_t) or not y.is_data_shared():
        raise Exception('identity output does not borrow input storage')
    if val_t.is_data_shared():
        raise Exception('input must keep owning its storage')

def compute_strides_bounded_test():
    pn.cleanup()
    plan = build_plan(3, (2,1,0) )
    for b in range(1, 51):
        info = compute_strides( (b,4,4), plan.axes_order)
        if info.output_shape != (4,4,b):
            raise Exception(f'wrong output shape {info.output_shape}')
    if pc.Cacheton.get_count(pc.info.InfoPermuteStrides) != 1:
        raise Exception('stride plans of previous shapes are kept')

    if compute_strides( (50,4,4), plan.axes_order) is not info:
        raise Exception('last stride plan is not cached')

    compute_strides( (2,3), (1,0) )
    if pc.Cacheton.get_count(pc.info.InfoPermuteStrides) != 2:
        raise Exception('stride plans of different orders must be kept apart')

def build_plan_rank_test():
    build_plan(2, (1,0) )
    build_plan(1, () )
    for rank, order in [ (2.0, (1,0)), (True, ()), (0, ()), ('2', (1,0)) ]:
        try:
            build_plan(rank, order)
            raise Exception(f'ConfigurationError is not raised for cached rank {rank!r}')
        except pc.ConfigurationError:
            pass

def permute_into_owner_test():
    for executor in _executors:
        val_n = np.random.randint( 2**8, size=(2,3) ).astype(np.float32)
        x = pn.Tensor_from_value(val_n)
        y = pn.permute(x, (0,1) )
        # x owns the storage y borrows
        pn.permute(y, (1,0), output_t=x, executor=executor)
        if not all( x.get_data() == val_n.T.reshape(-1) ):
            raise Exception(f'{executor}: input is overwritten while permuting into its owner')
