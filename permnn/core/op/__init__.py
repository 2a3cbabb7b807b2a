from .permute import (build_plan,
                      compute_strides,
                      get_executor,
                      permute,
                      permute_by_plan,
                      permute_idxs,
                      permute_index,
                      permute_np,
                      permute_op)
