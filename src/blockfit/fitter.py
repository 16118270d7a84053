"""
Driver of a blockmodel fit.

The fitter runs the phases

    INIT -> GREEDY_INIT (optional) -> BURN_IN -> SAMPLING -> DUMP

for a fixed number of groups, or scans the number of groups and keeps the one
with the lowest AIC. During the whole run it keeps the best state seen so far.

Dump and stop requests (e.g. from signal handlers) only raise flags. The flags
are polled once per Markov chain step, after the step's bookkeeping, so the
best state is never read while it is being replaced.
"""
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, TextIO

import numpy as np
from line_profiler import profile
from tqdm import tqdm

from blockfit.block_model import BlockModel
from blockfit.config import FitConfig
from blockfit.convergence import ConvergenceCriterion, EntropyConvergenceCriterion
from blockfit.graph_data import GraphData
from blockfit.greedy import GreedyStrategy
from blockfit.io import Writer
from blockfit.likelihood import aic, bic
from blockfit.mcmc import MetropolisHastingsStrategy
from blockfit.utils.logger import CSVLogger
from blockfit.utils.util import fresh_seed, group_count_candidates, set_random_seed

log = logging.getLogger(__name__)

# steps between polls of the stop flag in unbounded sampling
UNBOUNDED_BLOCK_SIZE = 1000


class FitPhase(str, Enum):
    INIT = "init"
    GREEDY_INIT = "greedy_init"
    BURN_IN = "burn_in"
    SAMPLING = "sampling"
    DUMP = "dump"


@dataclass(frozen=True)
class BestState:
    """
    Immutable snapshot of the best model seen so far. It is replaced as a
    whole, never updated in place.
    """
    model: Optional[BlockModel] = None
    log_likelihood: float = -np.inf


@dataclass(frozen=True)
class GroupCountResult:
    num_types: int
    log_likelihood: float
    aic: float
    bic: float


class BlockmodelFitter:
    def __init__(self,
                 graph_data: GraphData,
                 config: FitConfig,
                 writer: Optional[Writer] = None,
                 out: Optional[TextIO] = None,
                 trace: Optional[CSVLogger] = None,
                 criterion_factory: Callable[[], ConvergenceCriterion] = EntropyConvergenceCriterion,
                 progress: bool = False,
                 ):
        self.graph_data = graph_data
        self.config = config.validate()
        self.writer = writer if writer is not None else Writer.create(config.out_format)
        self.out = out if out is not None else sys.stdout
        self.trace = trace
        self.criterion_factory = criterion_factory
        self.progress = progress

        self.seed = config.seed if config.seed is not None else fresh_seed()
        self.rng = set_random_seed(self.seed)
        self.mcmc = MetropolisHastingsStrategy(rng=self.rng)

        self.model: Optional[BlockModel] = None
        self.best = BestState()
        self.phase = FitPhase.INIT
        self.scan_results: List[GroupCountResult] = []
        self.selected: Optional[GroupCountResult] = None
        self.samples = np.empty(0, dtype=np.float64)
        self.burn_in_blocks = 0
        self.dump_count = 0

        self._dump_requested = False
        self._stop_requested = False

    # ----- asynchronous requests -------------------------------------------
    def request_dump(self) -> None:
        """ Ask for a dump of the best state at the next safe point. """
        self._dump_requested = True

    def request_stop(self) -> None:
        """ Ask the chain to stop at the next safe point; the final dump still happens. """
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def dump_best_state(self) -> None:
        """ Write the best state found so far and clear the dump flag. """
        log.info(">> dumping best state of the chain")
        best = self.best
        self._dump_requested = False

        if best.model is None:
            log.debug(">> no model fitted yet, printing nothing")
            return

        metadata = {
            "seed": self.seed,
            "steps": self.mcmc.get_step_count(),
            "acceptance_ratio": self.mcmc.acceptance_ratio(),
        }
        self.writer.write(best.model.to_fit(metadata=metadata), self.out)
        self.dump_count += 1

    # ----- main entry point -------------------------------------------------
    def run(self) -> BestState:
        """ Fit the model, sample, and dump the best state once at the end. """
        log.info(">> graph has %d vertices and %d edges",
                 self.graph_data.num_nodes, self.graph_data.total_edges)
        log.debug(">> using random seed: %d", self.seed)

        if self.config.scan_groups:
            self.scan_group_counts()
        else:
            self.fit_for_group_count(self.config.groups)
            log.info(">> AIC = %.4f, BIC = %.4f", self._aic(self.best), self._bic(self.best))

        if not self._stop_requested:
            self.phase = FitPhase.SAMPLING
            if self.config.num_samples == 0:
                log.info(">> convergence condition satisfied, leaving the chain running until stopped")
                self.run_until_stopped()
            elif not self.config.scan_groups:
                # a scan has already sampled the selected chain
                log.info(">> convergence condition satisfied, taking %d samples", self.config.num_samples)
                self.samples = self.sample(self.config.num_samples)

        self.phase = FitPhase.DUMP
        self.dump_best_state()
        return self.best

    # ----- phases ----------------------------------------------------------
    def fit_for_group_count(self, num_types: int) -> BlockModel:
        """
        Initialise a fresh model with `num_types` groups and run the chain until
        the convergence criterion is satisfied.
        """
        self.phase = FitPhase.INIT
        model = BlockModel(self.graph_data, num_types)
        model.randomize(self.rng)
        self.model = model

        if self.config.init_method == "greedy":
            self.phase = FitPhase.GREEDY_INIT
            log.info(">> running greedy initialization")
            greedy = GreedyStrategy(model, max_steps=self.config.greedy_max_steps)
            greedy.optimize(callback=self._log_greedy_sweep)
            log.debug(">> greedy initialization stopped (%s) after %d sweeps",
                      greedy.last_stop_reason, greedy.get_step_count())

        self.best = BestState(model.copy(), model.get_log_likelihood())
        self.mcmc.set_model(model)

        log.info(">> starting Markov chain")
        self.phase = FitPhase.BURN_IN
        self.burn_in(model)
        return model

    def burn_in(self, model: BlockModel) -> bool:
        """
        Run blocks of MCMC steps until the convergence criterion is satisfied.

        :return: Whether convergence was reached (False if capped or stopped).
        """
        criterion = self.criterion_factory()
        samples = np.empty(self.config.block_size, dtype=np.float64)
        self.burn_in_blocks = 0

        while True:
            performed = self.run_block(self.config.block_size, samples)
            if performed < self.config.block_size:
                return False
            self.burn_in_blocks += 1

            converged = criterion.check(samples)
            report = criterion.report()
            if report:
                log.debug(">> %s", report)
            if converged:
                return True

            cap = self.config.max_burn_in_blocks
            if cap is not None and self.burn_in_blocks >= cap:
                log.warning(">> no convergence after %d burn-in blocks, continuing anyway",
                            self.burn_in_blocks)
                return False

    def sample(self, num_samples: int) -> np.ndarray:
        """ Take `num_samples` further steps and return their log-likelihoods. """
        samples = np.empty(num_samples, dtype=np.float64)
        performed = self.run_block(num_samples, samples)
        return samples[:performed]

    def run_until_stopped(self) -> None:
        while not self._stop_requested:
            self.run_block(UNBOUNDED_BLOCK_SIZE, None)

    def scan_group_counts(self) -> BlockModel:
        """
        Fit K = 2..floor(sqrt(n)) groups and keep the model with the lowest AIC.
        BIC is computed and reported only.
        """
        candidates = group_count_candidates(self.graph_data.num_nodes)
        if not candidates:
            raise ValueError(
                f"Graph with {self.graph_data.num_nodes} vertices is too small to scan "
                f"group counts; fix the number of groups instead."
            )

        best_aic = best_bic = np.inf
        selected_state: Optional[BestState] = None
        selected_samples = np.empty(0, dtype=np.float64)

        for num_types in tqdm(candidates, desc="Scanning group counts", disable=not self.progress):
            log.info(">> trying with %d types", num_types)
            self.fit_for_group_count(num_types)

            samples = np.empty(0, dtype=np.float64)
            if self.config.num_samples > 0 and not self._stop_requested:
                self.phase = FitPhase.SAMPLING
                samples = self.sample(self.config.num_samples)

            result = GroupCountResult(
                num_types=num_types,
                log_likelihood=self.best.log_likelihood,
                aic=self._aic(self.best),
                bic=self._bic(self.best),
            )
            self.scan_results.append(result)

            if result.aic < best_aic:
                best_aic = result.aic
                selected_state = self.best
                selected_samples = samples
                self.selected = result
            best_bic = min(best_bic, result.bic)

            log.debug(">> AIC = %.4f (%.4f), BIC = %.4f (%.4f)",
                      result.aic, best_aic, result.bic, best_bic)

            if self._stop_requested:
                break

        assert selected_state is not None and selected_state.model is not None
        self.best = selected_state
        self.samples = selected_samples
        self.model = selected_state.model.copy()
        self.mcmc.set_model(self.model)
        log.info(">> best type count is %d", self.model.num_types)
        return self.model

    # ----- Markov chain --------------------------------------------------------
    @profile
    def run_block(self, num_steps: int, samples: Optional[np.ndarray]) -> int:
        """
        Run `num_steps` MCMC steps, recording the log-likelihood after each step
        into `samples` (if given) and keeping track of the best state.

        Pending dump requests are served after each step; a pending stop request
        ends the block early.

        :return: Number of steps performed.
        """
        model = self.model
        assert model is not None

        for i in range(num_steps):
            if self._stop_requested:
                return i

            accepted = self.mcmc.step()
            logl = model.get_log_likelihood()
            if logl > self.best.log_likelihood:
                self.best = BestState(model.copy(), logl)

            if samples is not None:
                samples[i] = logl

            step = self.mcmc.get_step_count()
            if step % self.config.log_period == 0:
                log.info("[%8d] (%2d) %14.4f\t(%.4f)\t%s %8.4f",
                         step, model.num_types, logl, self.best.log_likelihood,
                         "*" if accepted else " ", self.mcmc.acceptance_ratio())
            if self.trace is not None:
                self.trace.log(
                    iteration=step,
                    phase=self.phase.value,
                    num_types=model.num_types,
                    log_likelihood=logl,
                    best_log_likelihood=self.best.log_likelihood,
                    accept_rate=self.mcmc.acceptance_ratio(),
                    last_accepted=accepted,
                )

            if self._dump_requested:
                self.dump_best_state()

        return num_steps

    # ----- helpers -----------------------------------------------------------
    def _log_greedy_sweep(self, sweep: int, model: BlockModel) -> None:
        log.info("[%8d] (%2d) %14.4f", sweep, model.num_types, model.get_log_likelihood())

    def _aic(self, state: BestState) -> float:
        assert state.model is not None
        return aic(state.log_likelihood, state.model.num_types)

    def _bic(self, state: BestState) -> float:
        assert state.model is not None
        return bic(state.log_likelihood, state.model.num_types, self.graph_data.num_nodes)
