from math import isqrt
from typing import List, Optional

import numpy as np

def fresh_seed() -> int:
    """ Random 32-bit seed drawn from OS entropy, so that a run can be repeated. """
    return int(np.random.SeedSequence().entropy % (1 << 32))

def set_random_seed(seed: Optional[int]) -> np.random.Generator:
    return np.random.default_rng(seed)

def group_count_candidates(num_nodes: int) -> List[int]:
    """ Block counts tried by the model-order scan: 2..floor(sqrt(n)). """
    return list(range(2, isqrt(max(num_nodes, 0)) + 1))
