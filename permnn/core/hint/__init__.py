"""
permnn hints

Library-wide defaults. Read at call time, so can be changed at any moment:

    pn.hint.Permute_default_executor = 'python'
"""

# Executor used by Permute and pn.permute if executor is not specified.
#  'numpy'   vectorized gather/scatter by precomputed index table
#  'python'  element by element loop
Permute_default_executor = 'numpy'

# Cache plans by (rank, order) and (shape, order) until pn.cleanup()
Permute_use_plan_cache = True
