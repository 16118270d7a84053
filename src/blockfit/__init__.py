from .graph_data import GraphData, gd_from_networkx, gd_from_edges
from .block_model import BlockModel
from .greedy import GreedyStrategy
from .mcmc import MetropolisHastingsStrategy
from .convergence import ConvergenceCriterion, EntropyConvergenceCriterion
from .fitter import BlockmodelFitter, BestState, FitPhase
from .config import FitConfig, ConfigError
from .io import BlockmodelFit, GraphLoader, Writer

__version__ = "0.1.0"
