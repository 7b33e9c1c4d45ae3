# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Prometheus exporter for HDHomeRun devices.
"""

from .collector import DeviceSnapshot, HdhrCollector, gather_device_snapshot, generate_metrics
from .app import create_app, target_address, DEFAULT_METRICS_PATH
