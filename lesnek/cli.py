"""
Command line interface for lesnek.
"""

import os
import sys
import argparse
import logging
from dataclasses import replace

from .client import issue_certificate
from .config import AcmeConfig, load_config, save_config
from .errors import Error


def setup_logging(level: str = "INFO", verbose: bool = False):
    """
    Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        verbose: Enable verbose output
    """
    # Set log level
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    # Detailed format when verbose mode is enabled
    if verbose:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if verbose:
        logging.getLogger('lesnek').setLevel(logging.DEBUG)
        logging.getLogger('urllib3').setLevel(logging.INFO)  # Reduce urllib3 verbosity

        import platform
        logging.info(f"Python version: {sys.version}")
        logging.info(f"Platform: {platform.platform()}")
        logging.info(f"Current directory: {os.getcwd()}")


def parse_args(argv=None):
    """
    Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="lesnek: Let's Encrypt (ACME v1) certificates for web roots"
    )

    parser.add_argument(
        "--config",
        help="Path to YAML configuration file"
    )
    parser.add_argument(
        "--domain",
        action="append",
        dest="domains",
        help="Domain to certify; the first one is the primary (can be given multiple times)"
    )
    parser.add_argument(
        "--reuse-csr",
        action="store_true",
        help="Reuse the CSR from the previous run if present"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: from config, else INFO)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output for debugging"
    )
    parser.add_argument(
        "--save-config",
        help="Save configuration to YAML file and exit"
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the CLI."""
    args = parse_args(argv)

    try:
        config = load_config(args.config) if args.config else AcmeConfig()
    except Error as e:
        print(f"Error loading configuration file: {e}", file=sys.stderr)
        sys.exit(1)

    if args.log_level:
        config = replace(config, log_level=args.log_level)
    setup_logging(config.log_level, args.verbose)

    if args.save_config:
        try:
            save_config(config, args.save_config)
            print(f"Configuration saved to {args.save_config}")
            sys.exit(0)
        except OSError as e:
            print(f"Error saving configuration: {e}", file=sys.stderr)
            sys.exit(1)

    if not args.domains:
        print("At least one --domain is required", file=sys.stderr)
        sys.exit(2)

    try:
        cert_path, key_path = issue_certificate(args.domains, config, reuse_csr=args.reuse_csr)
    except Error as e:
        logging.getLogger(__name__).error(f"Certificate issuance failed: {e}")
        sys.exit(1)

    print(f"Certificate: {cert_path}")
    print(f"Private key: {key_path}")


if __name__ == "__main__":
    main()
