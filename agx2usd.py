#!/usr/bin/env python3
"""
AGX to USD Converter - Command Line Version
Converts AGX animated geometry files to USD (.usdc binary or .usda text)

Exit codes:
  0  success
  1  usage error (missing or invalid arguments)
  2  input file cannot be opened
  3  conversion failure (header, stage creation or read error)
"""

import argparse
import sys

from agx_converter import AGXToUSDConverter
from core.errors import AGXConversionError, UsageError
from core.param_data import StageSettings


class UsageErrorParser(argparse.ArgumentParser):
    """Argument parser that reports bad arguments as UsageError instead of exiting"""

    def error(self, message):
        raise UsageError(message)


def build_parser():
    parser = UsageErrorParser(
        prog='agx2usd',
        description='Convert AGX animated geometry files to USD',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Binary USD output (crate format)
  agx2usd input.agx output.usdc

  # Text output, 30 fps playback, also write unrecognized arrays as primvars
  agx2usd input.agx output.usda --fps 30 --custom-primvars

The output file should have a .usdc extension for binary format.
        """
    )

    parser.add_argument('input', type=str, nargs='?', help='Input AGX file (.agx)')
    parser.add_argument('output', type=str, nargs='?', help='Output USD file (.usdc, .usda, .usd)')
    parser.add_argument('--fps', type=float, default=24.0,
                        help='Time codes per second (default: 24)')
    parser.add_argument('--up-axis', choices=['Y', 'Z'], default='Y',
                        help='Stage up axis (default: Y)')
    parser.add_argument('--custom-primvars', action='store_true',
                        help='Write unrecognized float/int arrays as vertex primvars')
    parser.add_argument('--quiet', action='store_true',
                        help='Only print errors')
    return parser


def main(argv=None):
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
        if not args.input or not args.output:
            raise UsageError("Please specify an input AGX file and an output USD file")

        if not args.quiet:
            print("AGX to USD Converter")
            print("====================")

        converter = AGXToUSDConverter(
            settings=StageSettings(fps=args.fps, up_axis=args.up_axis),
            emit_custom_primvars=args.custom_primvars,
            quiet=args.quiet,
        )
        converter.convert(args.input, args.output)

    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return e.exit_code
    except AGXConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code

    return 0


if __name__ == "__main__":
    sys.exit(main())
