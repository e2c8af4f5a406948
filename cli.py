#!/usr/bin/env python3
"""Command-line interface for the CHS-DRG Grouper."""

import argparse
import logging
import sys
from pathlib import Path

from chs_drg_grouper.batch import group_rows
from chs_drg_grouper.data.models import DrgCase
from chs_drg_grouper.errors import CaseValidationError, ConfigurationError
from chs_drg_grouper.grouper import create_grouper
from chs_drg_grouper.parser.cases import (
    parse_age, parse_sex, parse_weight, read_case_rows, split_codes, write_results
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="CHS-DRG Grouper - Assign DRGs to inpatient cases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single case
  python cli.py --data-dir ./data \\
                --pdx J20.900 --sdx E87.102,E87.803 --age 29 --sex 1 --weight 2789

  # With procedures
  python cli.py --data-dir ./data \\
                --pdx J20.900 --pproc 93.3500x004 --age 29 --sex M

  # Prompt for cases one after another
  python cli.py --data-dir ./data --interactive

  # Batch processing
  python cli.py --data-dir ./data --input cases.csv --output results.csv --workers 4
        """
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default="data",
        help="Path to the grouping scheme directory (default: ./data)"
    )

    # Single case options
    parser.add_argument("--id", type=str, default="", help="Case ID")
    parser.add_argument(
        "--pdx",
        type=str,
        help="Principal diagnosis (ICD-10 code)"
    )
    parser.add_argument(
        "--pproc",
        type=str,
        default="",
        help="Principal procedure (ICD-9-CM-3 code)"
    )
    parser.add_argument(
        "--sdx",
        type=str,
        help="Other diagnoses (comma-separated)"
    )
    parser.add_argument(
        "--sproc",
        type=str,
        help="Other procedures (comma-separated)"
    )
    parser.add_argument(
        "--age",
        type=str,
        help="Age in years (days / 365 under one year)"
    )
    parser.add_argument(
        "--sex",
        type=str,
        help="Sex (0/F = female, 1/M = male)"
    )
    parser.add_argument(
        "--weight",
        type=str,
        default="",
        help="Weight in grams (neonates)"
    )

    parser.add_argument(
        "--interactive", "-i",
        action="store_true",
        help="Prompt for cases until told to stop"
    )

    # Batch processing options
    parser.add_argument(
        "--input",
        type=str,
        help="Input CSV file for batch processing"
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Output CSV file for batch results"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used for batch grouping"
    )

    # Output options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed grouping notes"
    )

    return parser.parse_args(argv)


def build_case(case_id, pdx, pproc, sdx, sproc, sex, age, weight) -> DrgCase:
    """Build a case from the comma-separated values typed by the user."""
    return DrgCase(
        case_id=case_id,
        principal_dx=pdx,
        principal_proc=pproc or "",
        secondary_dx=split_codes(sdx or "", sep=","),
        secondary_procs=split_codes(sproc or "", sep=","),
        sex=parse_sex(sex or ""),
        age=parse_age(age or ""),
        weight=parse_weight(weight or ""),
    )


def print_result(case, result, verbose):
    print("\n" + "=" * 60)
    print("CHS-DRG GROUPING RESULT")
    print("=" * 60)
    if case.case_id:
        print(f"Case:        {case.case_id}")
    print(f"DRG:         {result.drg}")
    print(f"MDC:         {result.mdc or '-'}")
    print(f"ADRG:        {result.adrg or '-'}")

    if result.mcc_dx:
        print(f"MCC:         {result.mcc_dx}")
    elif result.cc_dx:
        print(f"CC:          {result.cc_dx}")
    elif result.severity:
        print("CC/MCC:      None")

    if verbose:
        print(f"\nAll diagnoses: {', '.join(sorted(case.all_dx))}")
        print(f"All procedures: {', '.join(sorted(case.all_procs)) or '-'}")
        if result.grouping_notes:
            print("\nGrouping Notes:")
            for note in result.grouping_notes:
                print(f"  - {note}")

    print("=" * 60 + "\n")


def process_single(grouper, args):
    """Process a single case from command-line arguments."""
    try:
        case = build_case(args.id, args.pdx, args.pproc, args.sdx, args.sproc,
                          args.sex, args.age, args.weight)
    except CaseValidationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print_result(case, grouper.group(case), args.verbose)


def process_interactive(grouper, verbose, read=input):
    """Prompt for cases until the user stops."""
    prompts = [
        ("case_id", "Enter case ID: "),
        ("pdx", "Enter principal diagnosis: "),
        ("pproc", "Enter principal procedure: "),
        ("sdx", "Enter other diagnoses (comma-separated): "),
        ("sproc", "Enter other procedures (comma-separated): "),
        ("sex", "Enter sex (0 = female, 1 = male): "),
        ("age", "Enter age: "),
        ("weight", "Enter weight: "),
    ]

    while True:
        try:
            values = {name: read(prompt).strip() for name, prompt in prompts}
        except EOFError:
            # Input closed (Ctrl-D or end of a pipe)
            print()
            break

        try:
            case = build_case(**values)
        except CaseValidationError as e:
            print(f"Error: {e}")
        else:
            print_result(case, grouper.group(case), verbose)

        try:
            answer = read("Group another case? [yes/quit]: ").strip().lower()
        except EOFError:
            print()
            break
        if answer not in ("y", "yes"):
            break


def process_batch(grouper, input_file, output_file, workers, verbose):
    """Process multiple cases from a CSV file."""
    columns, rows = read_case_rows(input_file)
    results = group_rows(grouper, rows, max_workers=workers)

    if output_file:
        write_results(output_file, columns, rows, results)
        print(f"Results written to {output_file}")
    else:
        # Print to stdout
        for r in results:
            if r.error:
                print(f"{r.case_id or r.index}: ERROR - {r.error}")
            else:
                line = f"{r.case_id or r.index}: {r.drg}"
                if verbose and r.result.grouping_notes:
                    line += f"  ({'; '.join(r.result.grouping_notes)})"
                print(line)

    failed = sum(1 for r in results if r.error)
    print(f"\nProcessed {len(results)} cases ({failed} with errors)")


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s"
    )

    # Validate data directory
    data_dir = Path(args.data_dir)
    if not data_dir.exists():
        print(f"Error: Data directory not found: {data_dir}")
        sys.exit(1)

    if not (args.input or args.pdx or args.interactive):
        print("Error: One of --pdx, --input or --interactive is required")
        print("Use --help for usage information")
        sys.exit(1)

    print("Initializing CHS-DRG Grouper...")
    try:
        grouper = create_grouper(data_dir)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    print("Ready.\n")

    if args.input:
        # Batch processing
        process_batch(grouper, args.input, args.output, args.workers, args.verbose)
    elif args.interactive:
        process_interactive(grouper, args.verbose)
    else:
        # Single case
        process_single(grouper, args)


if __name__ == "__main__":
    main()
