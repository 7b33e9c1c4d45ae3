# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Runs the HDHomeRun Prometheus exporter.
"""

from __future__ import annotations

import os
import sys
import argparse
import logging

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from ..internal_types import *
from ..constants import DEFAULT_TIMEOUT
from .app import create_app, DEFAULT_METRICS_PATH
from .logger import logger

DEFAULT_EXPORTER_ADDR = "0.0.0.0:9137"

def parse_listen_addr(addr: str) -> Tuple[str, int]:
    """Parses "host:port" or ":port" into a (host, port) tuple to listen on."""
    host, _, port_str = addr.rpartition(':')
    host = host.strip('[]')
    if host == '':
        host = '0.0.0.0'
    return (host, int(port_str))

def add_exporter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--metrics-addr', default=None,
                        help=f"Address to listen on. Default: $HDHOMERUN_EXPORTER_ADDR or {DEFAULT_EXPORTER_ADDR}")
    parser.add_argument('--metrics-path', default=None,
                        help=f"URL path for collected metrics. Default: $HDHOMERUN_EXPORTER_PATH or {DEFAULT_METRICS_PATH}")
    parser.add_argument('--timeout', type=float, default=None,
                        help=f"Timeout in seconds for requests to a device; 0 for no timeout. "
                             f"Default: $HDHOMERUN_TIMEOUT or {DEFAULT_TIMEOUT}")

def make_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Prometheus exporter for HDHomeRun devices.")
    add_exporter_args(parser)
    return parser

def make_exporter_app(args: argparse.Namespace) -> Tuple[FastAPI, str, int]:
    """Creates the exporter app from parsed arguments, falling back to environment
       variables for anything not given on the command line.

    Returns:
        A tuple (app, listen_host, listen_port).
    """
    metrics_addr: str = args.metrics_addr or os.environ.get('HDHOMERUN_EXPORTER_ADDR') or DEFAULT_EXPORTER_ADDR
    metrics_path: str = args.metrics_path or os.environ.get('HDHOMERUN_EXPORTER_PATH') or DEFAULT_METRICS_PATH
    timeout_secs: Optional[float] = args.timeout
    if timeout_secs is None:
        timeout_secs = float(os.environ.get('HDHOMERUN_TIMEOUT') or DEFAULT_TIMEOUT)

    host, port = parse_listen_addr(metrics_addr)
    app = create_app(metrics_path=metrics_path, timeout_secs=timeout_secs)
    logger.info(f"Starting HDHomeRun exporter on {metrics_addr!r}")
    return (app, host, port)

def run(argv: Optional[Sequence[str]]=None) -> int:
    load_dotenv()

    logging.basicConfig(level=logging.INFO)

    args = make_arg_parser().parse_args(argv)
    app, host, port = make_exporter_app(args)
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0

if __name__ == "__main__":
    rc = run()
    sys.exit(rc)
