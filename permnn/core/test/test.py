import numpy as np

import permnn as pn
import permnn.core as pc

from permnn.core.op.permute import (permute_test,
                                    permute_index_test,
                                    permute_executors_test,
                                    permute_np_inplace_test,
                                    permute_identity_alloc_test,
                                    compute_strides_bounded_test,
                                    build_plan_rank_test,
                                    permute_into_owner_test)

from permnn.core.module.Permute import (Permute_test,
                                        Permute_identity_test,
                                        Permute_config_test,
                                        Permute_round_trip_test,
                                        Permute_reshape_test,
                                        Permute_identity_alloc_test)

def TensorAxes_test():
    if pc.TensorAxes( (1,0) ).completed(4) != (1,0,2,3):
        raise Exception('wrong completed axes')
    if pc.TensorAxes( (2,) ).completed(4) != (2,0,1,3):
        raise Exception('wrong completed axes')
    if pc.TensorAxes(None).completed(3) != (0,1,2):
        raise Exception('wrong completed axes for None')
    if pc.TensorAxes( (0,2,3,1) ).inversed() != (0,3,1,2):
        raise Exception('wrong inversed axes')
    if not pc.TensorAxes( (0,1,2) ).is_identity() or pc.TensorAxes( (1,0) ).is_identity():
        raise Exception('wrong is_identity')
    if pc.TensorAxes( (3,1,0,2) ) - (1,2) != (3,0):
        raise Exception('wrong axes substraction')

    for axes in [ (0, 1.5), (None,), (True,), ('0',) ]:
        try:
            pc.TensorAxes(axes)
            raise Exception(f'ConfigurationError is not raised for {axes}')
        except pc.ConfigurationError:
            pass

def TensorShape_test():
    shape = pc.TensorShape( (2,3,4) )
    if shape.size != 24 or shape.rank != 3:
        raise Exception('wrong size or rank')
    if shape.strides() != (12,4,1):
        raise Exception(f'wrong strides {shape.strides()}')
    if pc.TensorShape( (5,) ).strides() != (1,):
        raise Exception('wrong strides of rank 1')
    if shape[ (2,0,1) ] != (4,2,3):
        raise Exception('wrong transposed shape')
    if pc.TensorShape( () ) != (1,):
        raise Exception('scalar shape must be (1,)')

    for bad_shape in [ (2,0), (-1,3), (None,) ]:
        try:
            pc.TensorShape(bad_shape)
            raise Exception(f'ValueError is not raised for {bad_shape}')
        except ValueError:
            pass

def InfoPermute_test():
    info = pc.info.InfoPermute(4, (1,0) )
    if info.axes_order != (1,0,2,3) or not info.need_permute:
        raise Exception(f'wrong plan {info}')

    info = pc.info.InfoPermute(3, (0,1,2) )
    if info.axes_order != (0,1,2) or info.need_permute:
        raise Exception(f'wrong plan {info}')

    info = pc.info.InfoPermute(3, [] )
    if info.need_permute:
        raise Exception(f'wrong plan for empty order {info}')

    for rank in [0, -1, 2.0, None]:
        try:
            pc.info.InfoPermute(rank, () )
            raise Exception(f'ConfigurationError is not raised for rank {rank}')
        except pc.ConfigurationError:
            pass

    # Broken completion must not be corrected silently
    completed = pc.TensorAxes.completed
    pc.TensorAxes.completed = lambda self, rank: pc.TensorAxes( (0,) )
    try:
        pc.info.InfoPermute(2, (0,) )
        raise Exception('InternalInvariantViolation is not raised')
    except pc.InternalInvariantViolation:
        pass
    finally:
        pc.TensorAxes.completed = completed

def InfoPermuteStrides_test():
    for _ in range(10):
        for rank in range(1, 6):
            shape = pc.TensorShape( np.random.randint( 6, size=(rank,) )+1 )
            axes_order = pc.TensorAxes( np.random.permutation(rank) )
            info = pc.info.InfoPermuteStrides(shape, axes_order)

            if any( info.output_shape[j] != shape[axes_order[j]] for j in range(rank) ):
                raise Exception(f'wrong output shape {info.output_shape} for {shape} {axes_order}')
            if info.old_strides != shape.strides() or \
               info.new_strides != info.output_shape.strides():
                raise Exception('wrong strides')
            if info.count != shape.size:
                raise Exception('wrong count')
            if info.gather_idxs().flags.writeable:
                raise Exception('gather_idxs must be read-only')

    info = pc.info.InfoPermuteStrides( (2,3,4,5), (1,0,2,3) )
    if info.output_shape != (3,2,4,5):
        raise Exception(f'wrong output shape {info.output_shape}')

    try:
        pc.info.InfoPermuteStrides( (2,3,4), (1,0) )
        raise Exception('ValueError is not raised for rank mismatch')
    except ValueError:
        pass

def Cacheton_test():
    pn.cleanup()

    plan = pn.build_plan(4, (1,0) )
    if pn.build_plan(4, [1,0]) is not plan:
        raise Exception('plan is not cached')
    if pn.build_plan(3, (1,0)) is plan:
        raise Exception('plan is cached for different rank')

    info = pn.compute_strides( (2,3,4,5), plan.axes_order )
    if pn.compute_strides( (2,3,4,5), plan.axes_order ) is not info:
        raise Exception('strides are not cached')
    if pn.compute_strides( (3,3,4,5), plan.axes_order ) is info:
        raise Exception('strides are cached for different shape')

    try:
        pn.build_plan(2, (0,0))
    except pc.ConfigurationError:
        pass
    if pc.Cacheton.get_count(pc.info.InfoPermute) != 2:
        raise Exception('failed plan must not be cached')

    pn.cleanup()
    if pc.Cacheton.get_count(pc.info.InfoPermute) != 0:
        raise Exception('cache is not freed')

    pn.hint.Permute_use_plan_cache = False
    try:
        if pn.build_plan(4, (1,0)) is pn.build_plan(4, (1,0)):
            raise Exception('plan is cached while hint is off')
    finally:
        pn.hint.Permute_use_plan_cache = True

def Tensor_test():
    t = pn.Tensor_from_value( np.arange(6).reshape( (2,3) ) )
    if t.shape != (2,3) or t.dtype != np.arange(6).dtype:
        raise Exception('wrong shape or dtype')

    try:
        t.set( np.zeros( (7,) ) )
        raise Exception('BufferSizeMismatch is not raised')
    except pc.BufferSizeMismatch as e:
        if e.expected != 6 or e.actual != 7:
            raise Exception('BufferSizeMismatch has wrong values')

    t2 = pn.Tensor_like(t)
    t2.share_data(t)
    if not t2.is_sharing_data_with(t) or not t2.is_data_shared():
        raise Exception('data is not shared')
    if t.is_data_shared():
        raise Exception('owner of data must not be marked as shared')
    t2._detach_data()
    if t2.is_sharing_data_with(t) or not all( t2.get_data() == t.get_data() ):
        raise Exception('data is not detached')

    t2.resize( (3,2) )
    if t2.shape != (3,2) or not all( t2.get_data() == t.get_data() ):
        raise Exception('own storage must be kept on resize of the same size')

    # Owner keeps its storage after the borrower detached
    t3 = pn.Tensor_like(t)
    t3.share_data(t)
    t3._detach_data()
    data = t.get_data()
    t.resize( (3,2) )
    if t.get_data() is not data or not all( t.get_data() == np.arange(6) ):
        raise Exception('owner storage is dropped on resize of the same size')

    t4 = pn.Tensor( (3,2), data=t.get_data() )
    if not t4.is_sharing_data_with(t) or not t4.is_data_shared() or t.is_data_shared():
        raise Exception('data passed to constructor is not borrowed')
    try:
        pn.Tensor( (4,), data=t.get_data() )
        raise Exception('BufferSizeMismatch is not raised')
    except pc.BufferSizeMismatch:
        pass

    if t.has_grad():
        raise Exception('gradient must not exist before first use')
    t.get_grad()
    if not t.has_grad():
        raise Exception('gradient is not created')
    t.free_grad()
    if t.has_grad():
        raise Exception('gradient is not freed')

    try:
        pn.Tensor( (4,) ).share_grad(t)
        raise Exception('BufferSizeMismatch is not raised')
    except pc.BufferSizeMismatch:
        pass

def hint_test():
    saved_executor = pn.hint.Permute_default_executor
    try:
        for executor in ['python', 'numpy']:
            pn.hint.Permute_default_executor = executor
            if pc.op.get_executor() != executor:
                raise Exception('hint is not used')

            val_n = np.random.randint( 2**8, size=(2,3,4) ).astype(np.float32)
            y = pn.permute(pn.Tensor_from_value(val_n), (2,0,1) )
            if not all( np.ndarray.flatten( y.np() == np.transpose(val_n, (2,0,1)) ) ):
                raise Exception(f'data is not equal with {executor} executor')
    finally:
        pn.hint.Permute_default_executor = saved_executor

def test_all(iterations=1):
    """
    Test library.
    """
    test_funcs = [
        TensorAxes_test,
        TensorShape_test,
        Tensor_test,
        InfoPermute_test,
        InfoPermuteStrides_test,
        Cacheton_test,
        hint_test,

        permute_index_test,
        permute_executors_test,
        permute_test,
        permute_np_inplace_test,
        permute_identity_alloc_test,
        compute_strides_bounded_test,
        build_plan_rank_test,
        permute_into_owner_test,

        Permute_test,
        Permute_identity_test,
        Permute_config_test,
        Permute_round_trip_test,
        Permute_reshape_test,
        Permute_identity_alloc_test,
        ]
    for _ in range(iterations):
        for test_func in test_funcs:
            print(f'{test_func.__name__}()')
            test_func()
            pn.cleanup()

    print('Done.')
