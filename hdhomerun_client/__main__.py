#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import asyncio
import logging
from signal import SIGINT, SIGTERM

import uvicorn
from dotenv import load_dotenv

from hdhomerun_client.internal_types import *
from hdhomerun_client import (
    __version__ as pkg_version,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    DISCOVERY_WAIT_TIME,
    DEVICE_ID_WILDCARD,
    DeviceType,
    HdhrTuner,
    HdhrClientConfig,
    hdhomerun_connect,
    discover_devices,
    strip_null,
    full_class_name,
  )
from hdhomerun_client.discovery import DISCOVERY_MULTICAST_ADDRESS, DISCOVERY_PORT
from hdhomerun_client.exporter.__main__ import add_exporter_args, make_exporter_app
from hdhomerun_client.emulator import HdhrEmulator, DEFAULT_EMULATOR_MODEL, DEFAULT_EMULATOR_DEVICE_ID

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

def error_jsonable(exc: BaseException) -> JsonableDict:
    error_classname = full_class_name(exc)
    error_message = str(exc)
    if error_message == "":
        error_message = error_classname
    return dict(error=error_classname, error_message=error_message)

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    def get_client_config(self) -> HdhrClientConfig:
        return HdhrClientConfig(
            default_host=self._args.host,
            default_port=self._args.port,
            timeout_secs=self._args.timeout,
          )

    async def cmd_discover(self) -> int:
        device_type = DeviceType.from_name(self._args.device_type)
        devices = await discover_devices(
            wait_secs=self._args.wait,
            device_type=device_type,
            device_id=self._args.device_id,
            multicast_address=self._args.address,
            multicast_port=self._args.discovery_port,
            bind_address=self._args.bind,
          )
        print(json.dumps([device.to_jsonable() for device in devices], indent=2))
        if len(devices) == 0:
            raise CmdExitError(1, "No HDHomeRun devices found")
        return 0

    async def cmd_query(self) -> int:
        continue_on_error: bool = self._args.continue_on_error
        names: List[str] = self._args.names
        if len(names) == 0:
            raise CmdExitError(1, "No names specified")
        results: List[JsonableDict] = []
        try:
            async with await hdhomerun_connect(config=self.get_client_config()) as client:
                for name in names:
                    result: JsonableDict = dict(name=name)
                    try:
                        result["value"] = await client.query_str(name)
                    except Exception as exc:
                        result.update(error_jsonable(exc))
                        results.append(result)
                        if not continue_on_error:
                            raise
                    else:
                        results.append(result)
        finally:
            print(json.dumps(results, indent=2))
        return 0

    async def cmd_set(self) -> int:
        name: str = self._args.name
        value: str = self._args.value
        async with await hdhomerun_connect(config=self.get_client_config()) as client:
            result = strip_null(await client.set(name, value))
        print(json.dumps(dict(name=name, value=result), indent=2))
        return 0

    async def cmd_tuners(self) -> int:
        results: List[JsonableDict] = []

        async def visit(tuner: HdhrTuner) -> None:
            debug = await tuner.debug()
            results.append(dict(index=tuner.index, debug=debug.to_jsonable()))

        async with await hdhomerun_connect(config=self.get_client_config()) as client:
            model = await client.model()
            await client.for_each_tuner(visit)
        print(json.dumps(dict(model=model, tuners=results), indent=2))
        return 0

    async def cmd_emulator(self) -> int:
        emulator = HdhrEmulator(
            bind_addr=self._args.bind,
            port=self._args.port,
            device_id=self._args.device_id,
            model=self._args.model,
            tuner_count=self._args.tuners,
            with_discovery=not self._args.no_discovery,
            discovery_port=self._args.discovery_port,
          )
        def sigint_cleanup() -> None:
            emulator.close(CmdExitError(1, "Emulator terminated with SIGINT or SIGTERM"))
        loop = asyncio.get_running_loop()
        for signal in (SIGINT, SIGTERM):
            loop.add_signal_handler(signal, sigint_cleanup)
        try:
            await emulator.run()
        finally:
            for signal in (SIGINT, SIGTERM):
                loop.remove_signal_handler(signal)
        return 0

    async def cmd_exporter(self) -> int:
        load_dotenv()
        app, host, port = make_exporter_app(self._args)
        server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_config=None))
        await server.serve()
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the hdhomerun-client command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Query and discover HDHomeRun devices.")

        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')

        def add_connection_args(p: argparse.ArgumentParser) -> None:
            p.add_argument('--host', default=None,
                           help='''The device host address, "discover://" or "discover://<device-id>". '''
                                '''Default: use env var HDHOMERUN_HOST.''')
            p.add_argument("--port", default=None, type=int,
                           help=f"Default device port number to connect to. Default: {DEFAULT_PORT}")
            p.add_argument("--timeout", default=None, type=float,
                           help=f"Timeout in seconds for each request; 0 for no timeout. Default: {DEFAULT_TIMEOUT}")

        # ======================= discover

        parser_discover = subparsers.add_parser('discover', description="Use UDP discovery to find HDHomeRun devices on the local subnet")
        parser_discover.add_argument('--wait', default=DISCOVERY_WAIT_TIME, type=float,
                            help=f'''Seconds to wait for replies. Default: {DISCOVERY_WAIT_TIME}''')
        parser_discover.add_argument('--type', dest='device_type', default='wildcard',
                            choices=['tuner', 'storage', 'wildcard'],
                            help='''The type of device to find. Default: wildcard''')
        parser_discover.add_argument('--id', dest='device_id', default=DEVICE_ID_WILDCARD,
                            help=f'''The eight hex character ID of the device to find. Default: {DEVICE_ID_WILDCARD}''')
        parser_discover.add_argument('--address', default=DISCOVERY_MULTICAST_ADDRESS,
                            help=f'''The address to send the discovery request to. Default: {DISCOVERY_MULTICAST_ADDRESS}''')
        parser_discover.add_argument('--discovery-port', default=DISCOVERY_PORT, type=int,
                            help=f'''The port to send the discovery request to. Default: {DISCOVERY_PORT}''')
        parser_discover.add_argument('-b', '--bind', default='',
                            help='''The local IP address to bind to. Default: all interfaces.''')
        parser_discover.set_defaults(func=self.cmd_discover)

        # ======================= query

        parser_query = subparsers.add_parser('query', description="Query one or more named values, e.g. /sys/model.")
        add_connection_args(parser_query)
        parser_query.add_argument('--continue', dest="continue_on_error", action='store_true', default=False,
                            help='Continue querying on error. Default: False')
        parser_query.add_argument('names', nargs='*',
                            help='''One or more names to query; e.g., "/tuner0/debug".''')
        parser_query.set_defaults(func=self.cmd_query)

        # ======================= set

        parser_set = subparsers.add_parser('set', description="Set a named value.")
        add_connection_args(parser_set)
        parser_set.add_argument('name', help='''The name to set.''')
        parser_set.add_argument('value', help='''The value to set.''')
        parser_set.set_defaults(func=self.cmd_set)

        # ======================= tuners

        parser_tuners = subparsers.add_parser('tuners', description="Show the model and the status of every tuner.")
        add_connection_args(parser_tuners)
        parser_tuners.set_defaults(func=self.cmd_tuners)

        # ======================= emulator

        parser_emulator = subparsers.add_parser('emulator', description="Run a device emulator for testing purposes.")
        parser_emulator.add_argument("--port", default=DEFAULT_PORT, type=int,
            help=f"TCP port number to listen on. Default: {DEFAULT_PORT}")
        parser_emulator.add_argument('-b', '--bind', default="0.0.0.0",
                            help='''The local IP address to bind to. Default: 0.0.0.0.''')
        parser_emulator.add_argument('--id', dest='device_id', default=DEFAULT_EMULATOR_DEVICE_ID,
                            help=f'''The device ID to report. Default: {DEFAULT_EMULATOR_DEVICE_ID}''')
        parser_emulator.add_argument('--model', default=DEFAULT_EMULATOR_MODEL,
                            help=f'''The model to report. Default: {DEFAULT_EMULATOR_MODEL}''')
        parser_emulator.add_argument('--tuners', default=2, type=int,
                            help='''The number of tuners to emulate. Default: 2''')
        parser_emulator.add_argument('--discovery-port', default=DISCOVERY_PORT, type=int,
                            help=f'''The UDP port to answer discovery requests on. Default: {DISCOVERY_PORT}''')
        parser_emulator.add_argument('--no-discovery', action='store_true', default=False,
                            help='''Do not answer discovery requests.''')
        parser_emulator.set_defaults(func=self.cmd_emulator)

        # ======================= exporter

        parser_exporter = subparsers.add_parser('exporter', description="Run the Prometheus exporter.")
        add_exporter_args(parser_exporter)
        parser_exporter.set_defaults(func=self.cmd_exporter)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            ex_desc = str(ex)
            if len(ex_desc) == 0:
                ex_desc = ex.__class__.__name__
            print(f"hdhomerun-client: error: {ex_desc}", file=sys.stderr)
        except BaseException as ex:
            print(f"hdhomerun-client: Unhandled exception {ex.__class__.__name__}: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        return asyncio.run(self.arun())

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
