#!/usr/bin/env python3
###############################################################################
#                                                                             #
#    This program is free software: you can redistribute it and/or modify     #
#    it under the terms of the GNU General Public License as published by     #
#    the Free Software Foundation, either version 3 of the License, or        #
#    (at your option) any later version.                                      #
#                                                                             #
#    This program is distributed in the hope that it will be useful,          #
#    but WITHOUT ANY WARRANTY; without even the implied warranty of           #
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the            #
#    GNU General Public License for more details.                             #
#                                                                             #
#    You should have received a copy of the GNU General Public License        #
#    along with this program. If not, see <http://www.gnu.org/licenses/>.     #
#                                                                             #
###############################################################################
import argparse
import logging
import sys

from coocnet._config import (
    CORRECTION_METHODS,
    CORRELATION_METHODS,
    CUTOFF_MODES,
    DEFAULT_ALPHA,
    DEFAULT_CHUNK_REPS,
    DEFAULT_COMMUNITY_METHODS,
    DEFAULT_CORRECTION,
    DEFAULT_FIXED_CUTOFF,
    DEFAULT_HUB_FRACTION,
    DEFAULT_METHOD,
    DEFAULT_N_REPS,
    DEFAULT_PRECISION,
    DEFAULT_TAIL_P,
)
from coocnet.errors import CoocnetError


def positive_int(value):
    try:
        ivalue = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not an integer")

    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def non_negative_int(value):
    try:
        ivalue = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not an integer")

    if ivalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is negative")
    return ivalue


def open_probability(value):
    try:
        value = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not a valid float.")

    if value <= 0.0 or value >= 1.0:
        raise argparse.ArgumentTypeError("Value must lie strictly between 0 and 1.")
    return value


def fraction(value):
    try:
        value = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not a valid float.")

    if value <= 0.0 or value > 1.0:
        raise argparse.ArgumentTypeError("Fraction must lie in (0, 1].")
    return value


def correlation_cutoff(value):
    try:
        value = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not a valid float.")

    if value < 0.0 or value > 1.0:
        raise argparse.ArgumentTypeError("Correlation cutoff must be between 0 and 1.")
    return value


def _add_input_arguments(req, opt):
    req.add_argument(
        "--abundance_file",
        required=True,
        help=(
            "Organisms x samples abundance table (TSV/CSV, first column = organism ids, "
            "header = sample ids) or a pickled AbundanceMatrix/DataFrame."
        ),
    )
    req.add_argument(
        "--output_dir",
        required=True,
        help="Directory where output files will be saved.",
    )
    opt.add_argument(
        "--samples_as_rows",
        action="store_true",
        help="The abundance table has samples as rows and organisms as columns.",
    )
    opt.add_argument(
        "--tag",
        default="",
        help="Optional tag to prepend to output filenames for distinction.",
    )
    opt.add_argument(
        "--method",
        choices=CORRELATION_METHODS,
        default=DEFAULT_METHOD,
        help="Correlation method (default: %(default)s).",
    )


def _add_significance_arguments(opt):
    opt.add_argument(
        "--correction",
        choices=sorted(CORRECTION_METHODS),
        default=DEFAULT_CORRECTION,
        help="Multiple-comparison correction for pair p-values (default: %(default)s).",
    )
    opt.add_argument(
        "--alpha",
        type=open_probability,
        default=DEFAULT_ALPHA,
        help="Adjusted p-value below which a correlation is significant (default: %(default)s).",
    )


def _add_bootstrap_arguments(opt):
    opt.add_argument(
        "--n_reps",
        type=positive_int,
        default=DEFAULT_N_REPS,
        help="Number of bootstrap iterations (default: %(default)s).",
    )
    opt.add_argument(
        "--tail_p",
        type=open_probability,
        default=DEFAULT_TAIL_P,
        help="Two-sided tail probability for the bootstrap cutoffs (default: %(default)s).",
    )
    opt.add_argument(
        "--precision",
        type=non_negative_int,
        default=DEFAULT_PRECISION,
        help="Decimal places correlations are rounded to in the histogram (default: %(default)s).",
    )
    opt.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible resampling.",
    )
    opt.add_argument(
        "--n_workers",
        type=positive_int,
        default=1,
        help="Worker processes for the bootstrap (default: %(default)s).",
    )
    opt.add_argument(
        "--chunk_reps",
        type=positive_int,
        default=DEFAULT_CHUNK_REPS,
        help="Bootstrap iterations per task (default: %(default)s).",
    )
    opt.add_argument(
        "--no_progress",
        action="store_true",
        help="Do not show a progress bar.",
    )


def build_parser():
    parser = argparse.ArgumentParser(
        prog="coocnet",
        description="Co-occurrence networks of organisms from abundance tables",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug messages.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ----------------------------
    # CORRELATE SUBCOMMAND
    # ----------------------------
    corr_sub = subparsers.add_parser("correlate", help="Pairwise correlation (and significance) of organisms.")
    req = corr_sub.add_argument_group("required arguments")
    opt = corr_sub.add_argument_group("optional arguments")
    _add_input_arguments(req, opt)
    opt.add_argument(
        "--significance",
        action="store_true",
        help="Also write adjusted p-values and the significant correlations.",
    )
    _add_significance_arguments(opt)

    def correlate_command(args):
        from coocnet.pipelines import run_correlation

        args.tag = f"{args.tag}_" if args.tag else ""
        run_correlation(args)

    corr_sub.set_defaults(func=correlate_command)

    # ----------------------------
    # BOOTSTRAP SUBCOMMAND
    # ----------------------------
    boot_sub = subparsers.add_parser("bootstrap", help="Bootstrap histogram of correlations and cutoffs.")
    req = boot_sub.add_argument_group("required arguments")
    opt = boot_sub.add_argument_group("optional arguments")
    _add_input_arguments(req, opt)
    _add_bootstrap_arguments(opt)

    def bootstrap_command(args):
        from coocnet.pipelines import run_bootstrap

        args.tag = f"{args.tag}_" if args.tag else ""
        run_bootstrap(args)

    boot_sub.set_defaults(func=bootstrap_command)

    # ----------------------------
    # NETWORK SUBCOMMAND
    # ----------------------------
    net_sub = subparsers.add_parser(
        "network", help="Run the full co-occurrence network workflow (in-memory)."
    )
    req = net_sub.add_argument_group("required arguments")
    opt = net_sub.add_argument_group("optional arguments")
    _add_input_arguments(req, opt)
    opt.add_argument(
        "--cutoff_mode",
        choices=CUTOFF_MODES,
        default="bootstrap",
        help="Derive cutoffs from the bootstrap histogram or use --fixed_cutoff (default: %(default)s).",
    )
    opt.add_argument(
        "--fixed_cutoff",
        type=correlation_cutoff,
        default=DEFAULT_FIXED_CUTOFF,
        help="Absolute correlation cutoff used with --cutoff_mode fixed (default: %(default)s).",
    )
    opt.add_argument(
        "--significance_filter",
        action="store_true",
        help="Only threshold correlations whose adjusted p-value is below --alpha.",
    )
    _add_significance_arguments(opt)
    _add_bootstrap_arguments(opt)
    opt.add_argument(
        "--hub_fraction",
        type=fraction,
        default=DEFAULT_HUB_FRACTION,
        help="Fraction of organisms (by degree rank) reported as hubs (default: %(default)s).",
    )
    opt.add_argument(
        "--community_methods",
        nargs="+",
        choices=DEFAULT_COMMUNITY_METHODS,
        default=list(DEFAULT_COMMUNITY_METHODS),
        help="Community detection algorithm(s) to run (default: %(default)s).",
    )
    # Filter-related optional
    opt.add_argument(
        "--min_organism_count",
        type=positive_int,
        help="Minimum number of detected organisms a sample must have to be included.",
    )
    opt.add_argument(
        "--min_sample_count",
        type=positive_int,
        help="Minimum number of samples in which an organism must be detected.",
    )

    def network_command(args):
        from coocnet.pipelines import run_network

        args.tag = f"{args.tag}_" if args.tag else ""
        run_network(args)

    net_sub.set_defaults(func=network_command)

    return parser


def parse_cli(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        args.func(args)
    except (CoocnetError, FileNotFoundError) as err:
        print(f"coocnet {args.command}: error: {err}", file=sys.stderr)
        sys.exit(1)
    return args


if __name__ == "__main__":
    parse_cli()
