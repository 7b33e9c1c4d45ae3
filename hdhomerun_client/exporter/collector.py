# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Prometheus metrics for an HDHomeRun device.

Collection happens in two steps: an async step that queries the device for its
model and the debug status of each tuner (gather_device_snapshot), and a
synchronous prometheus_client collector that turns the snapshot into gauge
families (HdhrCollector).
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.metrics_core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from ..internal_types import *
from ..status import TunerDebug, TunerStatus, CableCardStatus, NetworkStatus
from .logger import logger

if TYPE_CHECKING:
    from ..client import HdhrClient, HdhrTuner

class DeviceSnapshot:
    """The model and per-tuner debug status of a device at one point in time."""

    model: str
    tuners: List[Tuple[int, TunerDebug]]
    """(tuner index, debug status) for each tuner, in index order."""

    def __init__(self, model: str, tuners: Optional[Iterable[Tuple[int, TunerDebug]]]=None) -> None:
        self.model = model
        self.tuners = [] if tuners is None else list(tuners)

    def __str__(self) -> str:
        return f"DeviceSnapshot(model={self.model!r}, tuners={self.tuners})"

    def __repr__(self) -> str:
        return str(self)

async def gather_device_snapshot(device: HdhrClient) -> DeviceSnapshot:
    """Queries a device for its model and the debug status of every tuner."""
    model = await device.model()
    result = DeviceSnapshot(model)

    async def visit(tuner: HdhrTuner) -> None:
        result.tuners.append((tuner.index, await tuner.debug()))

    await device.for_each_tuner(visit)
    logger.debug(f"Collected {result}")
    return result

def _ratio(percent: int) -> float:
    return percent / 100

def _bytes_per_second(bits_per_second: int) -> float:
    return bits_per_second / 8

class HdhrCollector(Collector):
    """A prometheus_client collector that reports a DeviceSnapshot."""

    snapshot: DeviceSnapshot

    def __init__(self, snapshot: DeviceSnapshot) -> None:
        self.snapshot = snapshot

    def collect(self) -> Iterable[Metric]:
        device_info = GaugeMetricFamily(
            "hdhomerun_device_info",
            "Metadata about the device.",
            labels=["model"])
        device_info.add_metric([self.snapshot.model], 1)

        tuner_info = GaugeMetricFamily(
            "hdhomerun_tuner_info",
            "Metadata about each of the tuners available to a device.",
            labels=["tuner", "channel", "lock"])
        signal_strength = GaugeMetricFamily(
            "hdhomerun_tuner_signal_strength_ratio",
            "Television signal strength ratio for this tuner.",
            labels=["tuner"])
        signal_to_noise = GaugeMetricFamily(
            "hdhomerun_tuner_signal_to_noise_ratio",
            "Television signal-to-noise ratio for this tuner.",
            labels=["tuner"])
        symbol_error = GaugeMetricFamily(
            "hdhomerun_tuner_symbol_error_ratio",
            "Television symbol error ratio for this tuner.",
            labels=["tuner"])
        cablecard_bytes = GaugeMetricFamily(
            "hdhomerun_cablecard_bytes_per_second",
            "Number of bytes per second being received by the CableCARD.")
        cablecard_overflow = GaugeMetricFamily(
            "hdhomerun_cablecard_overflow",
            "Number of buffer overflows for the CableCARD.")
        cablecard_resync = GaugeMetricFamily(
            "hdhomerun_cablecard_resync",
            "Number of re-sync operations due to missing sync byte in transport stream for the CableCARD.")
        network_pps = GaugeMetricFamily(
            "hdhomerun_network_packets_per_second",
            "Number of packets per second being sent by the device for this tuner.",
            labels=["tuner"])
        network_errors = GaugeMetricFamily(
            "hdhomerun_network_errors",
            "Number of device network errors for this tuner.",
            labels=["tuner"])

        def add_tuner(tuner: str, ts: TunerStatus) -> None:
            tuner_info.add_metric([tuner, ts.channel, ts.lock], 1)
            signal_strength.add_metric([tuner], _ratio(ts.signal_strength))
            signal_to_noise.add_metric([tuner], _ratio(ts.signal_to_noise_quality))
            symbol_error.add_metric([tuner], _ratio(ts.symbol_error_quality))

        def add_cablecard(cc: CableCardStatus) -> None:
            cablecard_bytes.add_metric([], _bytes_per_second(cc.bits_per_second))
            cablecard_overflow.add_metric([], cc.overflow)
            cablecard_resync.add_metric([], cc.resync)

        def add_network(tuner: str, net: NetworkStatus) -> None:
            network_pps.add_metric([tuner], net.packets_per_second)
            network_errors.add_metric([tuner], net.errors)

        for n, (index, debug) in enumerate(self.snapshot.tuners):
            tuner = str(index)
            if debug.tuner is not None:
                add_tuner(tuner, debug.tuner)
            if debug.network is not None:
                add_network(tuner, debug.network)
            # All tuners share the path into the CableCARD, so only the first tuner is reported
            if n == 0 and debug.cablecard is not None:
                add_cablecard(debug.cablecard)

        families = [
            device_info,
            tuner_info,
            signal_strength,
            signal_to_noise,
            symbol_error,
            cablecard_bytes,
            cablecard_overflow,
            cablecard_resync,
            network_pps,
            network_errors,
          ]
        for family in families:
            if len(family.samples) > 0:
                yield family

def generate_metrics(snapshot: DeviceSnapshot) -> bytes:
    """Renders a DeviceSnapshot in the Prometheus text exposition format."""
    registry = CollectorRegistry()
    registry.register(HdhrCollector(snapshot))
    return generate_latest(registry)
