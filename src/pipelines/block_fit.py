# src/pipelines/block_fit.py
"""
block-fit: fit an undirected stochastic blockmodel to an edge list.

Usage:
    block-fit graph.edges
    block-fit -g 4 -s 0 --seed 42 graph.edges     # sample until interrupted
    cat graph.edges | block-fit -F json -

While sampling, send SIGUSR1 to dump the current best state to the output.
"""
import argparse
import logging
import signal
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, List, Optional

from blockfit.config import ConfigError, FitConfig
from blockfit.fitter import BlockmodelFitter
from blockfit.io import GraphLoader, Writer
from blockfit.utils.logger import CSVLogger

log = logging.getLogger("block-fit")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="block-fit",
        description="Fit a stochastic blockmodel to an undirected graph.",
    )
    p.add_argument("input", help="Edge list file, or '-' for standard input.")

    basic = p.add_argument_group("basic algorithm parameters")
    basic.add_argument("-F", "--out-format", choices=sorted(Writer.registry),
                       help="Format of the dumped result (default: plain).")
    basic.add_argument("-g", "--groups", type=int, metavar="K",
                       help="Number of groups; -1 selects it by AIC (default: -1).")
    basic.add_argument("-o", "--output", type=Path, metavar="FILE",
                       help="Write results to FILE instead of standard output.")
    basic.add_argument("-s", "--samples", dest="num_samples", type=int, metavar="N",
                       help="Samples taken after convergence; 0 samples until "
                            "interrupted (default: 100000).")

    advanced = p.add_argument_group("advanced algorithm parameters")
    advanced.add_argument("--block-size", type=int, metavar="N",
                          help="MCMC steps per convergence check (default: 65536).")
    advanced.add_argument("--init-method", choices=["greedy", "random"],
                          help="Initialization of the Markov chain (default: greedy).")
    advanced.add_argument("--log-period", type=int, metavar="COUNT",
                          help="Show a status message every COUNT steps (default: 8192).")
    advanced.add_argument("--seed", type=int,
                          help="Seed of the random number generator.")
    advanced.add_argument("--max-burn-in-blocks", type=int, metavar="N",
                          help="Give up waiting for convergence after N blocks.")
    advanced.add_argument("--config", type=Path, metavar="FILE",
                          help="YAML file with default values for the options above.")
    advanced.add_argument("--trace", type=Path, metavar="FILE",
                          help="Write a CSV trace of the chain to FILE.")

    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug messages.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Show warnings and errors only.")
    return p


def load_config(args: argparse.Namespace) -> FitConfig:
    config = FitConfig.from_yaml(args.config) if args.config else FitConfig()
    return config.override(
        groups=args.groups,
        num_samples=args.num_samples,
        out_format=args.out_format,
        block_size=args.block_size,
        init_method=args.init_method,
        log_period=args.log_period,
        seed=args.seed,
        max_burn_in_blocks=args.max_burn_in_blocks,
    ).validate()


def install_signal_handlers(fitter: BlockmodelFitter) -> Dict[int, Any]:
    """
    Handlers only raise flags on the fitter; the Markov chain serves them at
    the next safe point. Returns the previous handlers.
    """
    def _dump(signum, frame):
        fitter.request_dump()

    def _stop(signum, frame):
        fitter.request_stop()

    handlers = {signal.SIGINT: _stop, signal.SIGTERM: _stop}
    if hasattr(signal, "SIGUSR1"):
        handlers[signal.SIGUSR1] = _dump

    return {signum: signal.signal(signum, handler) for signum, handler in handlers.items()}


def restore_signal_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        config = load_config(args)
    except ConfigError as exc:
        parser.error(str(exc))  # exits with status 2

    log.info(">> loading graph: %s", args.input)
    try:
        graph = GraphLoader.load(args.input)
    except (OSError, ValueError) as exc:
        log.error("Cannot load graph: %s", exc)
        return 1

    with ExitStack() as stack:
        out = stack.enter_context(args.output.open("w")) if args.output else sys.stdout
        trace = (stack.enter_context(CSVLogger(args.trace, log_every=config.log_period))
                 if args.trace else None)

        fitter = BlockmodelFitter(
            graph_data=graph,
            config=config,
            out=out,
            trace=trace,
            progress=not args.quiet,
        )
        previous_handlers = install_signal_handlers(fitter)
        if config.num_samples == 0 and hasattr(signal, "SIGUSR1"):
            log.info(">> send SIGUSR1 to dump the current best state, SIGINT or SIGTERM to stop")

        try:
            fitter.run()
        except ValueError as exc:
            log.error("%s", exc)
            return 1
        finally:
            restore_signal_handlers(previous_handlers)

    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
