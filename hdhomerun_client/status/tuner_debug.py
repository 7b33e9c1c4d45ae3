# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Parser for the text returned by a "/tuner<n>/debug" get/set query.

A typical reply looks like:

    tun: ch=qam:381000000 lock=qam256:381000000 ss=100 snq=100 seq=100 dbg=-370/8270
    dev: bps=38809216 resync=1 overflow=0
    cc: bps=38809216 resync=0 overflow=0
    ts: bps=38810720 te=0 crc=0
    net: pps=0 err=0 stop=0

Each line names a component, followed by key=value pairs. Components that
a tuner does not report are left as None.
"""

from __future__ import annotations

from aenum import IntEnum as AIntEnum

from ..internal_types import *
from ..exceptions import HdhrStatusParseError

class StopReason(AIntEnum):
    """The reason a tuner's outgoing network stream has stopped."""

    NOT_STOPPED                 = 0
    INTENTIONAL                 = 1
    ICMP_REJECT                 = 2
    CONNECTION_LOSS             = 3
    HTTP_CONNECTION_CLOSE       = 4

    @classmethod
    def from_code(cls, code: int) -> Union[StopReason, int]:
        """Returns the StopReason for a code, or the code itself if it is not recognized."""
        try:
            return cls(code)
        except ValueError:
            return code

class TunerStatus:
    """The status of an HDHomeRun tuner."""
    channel: str = ''
    lock: str = ''
    signal_strength: int = 0
    """Signal strength, in percent."""
    signal_to_noise_quality: int = 0
    """Signal to noise quality, in percent."""
    symbol_error_quality: int = 0
    """Symbol error quality, in percent."""
    debug: str = ''

    def to_jsonable(self) -> JsonableDict:
        return dict(
            channel=self.channel,
            lock=self.lock,
            signal_strength=self.signal_strength,
            signal_to_noise_quality=self.signal_to_noise_quality,
            symbol_error_quality=self.symbol_error_quality,
            debug=self.debug,
          )

    def __str__(self) -> str:
        return (f"TunerStatus(channel={self.channel!r}, lock={self.lock!r}, ss={self.signal_strength}, "
                f"snq={self.signal_to_noise_quality}, seq={self.symbol_error_quality}, debug={self.debug!r})")

    def __repr__(self) -> str:
        return str(self)

class DeviceStatus:
    """The status of the tuner while processing a stream."""
    bits_per_second: int = 0
    resync: int = 0
    overflow: int = 0

    def to_jsonable(self) -> JsonableDict:
        return dict(bits_per_second=self.bits_per_second, resync=self.resync, overflow=self.overflow)

    def __str__(self) -> str:
        return f"DeviceStatus(bps={self.bits_per_second}, resync={self.resync}, overflow={self.overflow})"

    def __repr__(self) -> str:
        return str(self)

class CableCardStatus:
    """The status of a CableCARD, if one is present in the device."""
    bits_per_second: int = 0
    resync: int = 0
    overflow: int = 0

    def to_jsonable(self) -> JsonableDict:
        return dict(bits_per_second=self.bits_per_second, resync=self.resync, overflow=self.overflow)

    def __str__(self) -> str:
        return f"CableCardStatus(bps={self.bits_per_second}, resync={self.resync}, overflow={self.overflow})"

    def __repr__(self) -> str:
        return str(self)

class TransportStreamStatus:
    """The status of the incoming video stream from the tuner."""
    bits_per_second: int = 0
    transport_errors: int = 0
    crc_errors: int = 0

    def to_jsonable(self) -> JsonableDict:
        return dict(
            bits_per_second=self.bits_per_second,
            transport_errors=self.transport_errors,
            crc_errors=self.crc_errors,
          )

    def __str__(self) -> str:
        return (f"TransportStreamStatus(bps={self.bits_per_second}, te={self.transport_errors}, "
                f"crc={self.crc_errors})")

    def __repr__(self) -> str:
        return str(self)

class NetworkStatus:
    """The status of the outgoing network stream from the tuner."""
    packets_per_second: int = 0
    errors: int = 0
    stop: Union[StopReason, int] = StopReason.NOT_STOPPED

    def to_jsonable(self) -> JsonableDict:
        stop = self.stop.name.lower() if isinstance(self.stop, StopReason) else self.stop
        return dict(packets_per_second=self.packets_per_second, errors=self.errors, stop=stop)

    def __str__(self) -> str:
        return f"NetworkStatus(pps={self.packets_per_second}, err={self.errors}, stop={self.stop!r})"

    def __repr__(self) -> str:
        return str(self)

def _parse_int(key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise HdhrStatusParseError(f"Non-numeric value for tuner status key {key!r}: {value!r}") from None

def _parse_key_values(fields: List[str]) -> List[Tuple[str, str]]:
    result: List[Tuple[str, str]] = []
    for field in fields:
        kv = field.split('=')
        if len(kv) != 2:
            raise HdhrStatusParseError(f"Invalid key=value pair: {field!r}")
        result.append((kv[0], kv[1]))
    return result

class TunerDebug:
    """Debugging information about an HDHomeRun tuner.

    If information about a particular component is not available, the
    corresponding attribute is None.
    """
    tuner: Optional[TunerStatus] = None
    device: Optional[DeviceStatus] = None
    cablecard: Optional[CableCardStatus] = None
    transport_stream: Optional[TransportStreamStatus] = None
    network: Optional[NetworkStatus] = None

    @classmethod
    def parse(cls, data: Union[str, bytes]) -> TunerDebug:
        """Parses the value returned by a "/tuner<n>/debug" query.

        Trailing null bytes are ignored. Lines with an unrecognized
        component name are ignored.

        Raises:
            HdhrStatusParseError: A line or one of its values is malformed.
        """
        if isinstance(data, bytes):
            data = data.decode('utf-8', errors='replace')
        result = cls()
        for line in data.split('\n'):
            result.parse_line(line.rstrip('\x00'))
        return result

    def parse_line(self, line: str) -> None:
        """Parses a single tuner status line into this object."""
        fields = line.split()
        if len(fields) == 0:
            return
        if len(fields) < 2:
            raise HdhrStatusParseError(f"Malformed tuner status line: {line!r}")

        kvs = _parse_key_values(fields[1:])
        component = fields[0]
        if component == 'tun:':
            self.tuner = self._parse_tuner(kvs)
        elif component == 'dev:':
            dev = DeviceStatus()
            for k, v in kvs:
                n = _parse_int(k, v)
                if k == 'bps':
                    dev.bits_per_second = n
                elif k == 'resync':
                    dev.resync = n
                elif k == 'overflow':
                    dev.overflow = n
            self.device = dev
        elif component == 'cc:':
            cc = CableCardStatus()
            for k, v in kvs:
                n = _parse_int(k, v)
                if k == 'bps':
                    cc.bits_per_second = n
                elif k == 'resync':
                    cc.resync = n
                elif k == 'overflow':
                    cc.overflow = n
            self.cablecard = cc
        elif component == 'ts:':
            ts = TransportStreamStatus()
            for k, v in kvs:
                n = _parse_int(k, v)
                if k == 'bps':
                    ts.bits_per_second = n
                elif k == 'te':
                    ts.transport_errors = n
                elif k == 'crc':
                    ts.crc_errors = n
            self.transport_stream = ts
        elif component == 'net:':
            net = NetworkStatus()
            for k, v in kvs:
                n = _parse_int(k, v)
                if k == 'pps':
                    net.packets_per_second = n
                elif k == 'err':
                    net.errors = n
                elif k == 'stop':
                    net.stop = StopReason.from_code(n)
            self.network = net

    @staticmethod
    def _parse_tuner(kvs: List[Tuple[str, str]]) -> TunerStatus:
        tun = TunerStatus()
        for k, v in kvs:
            # Only ss, snq and seq are numeric; other unknown keys are skipped
            if k == 'ch':
                tun.channel = v
            elif k == 'lock':
                tun.lock = v
            elif k == 'dbg':
                tun.debug = v
            elif k == 'ss':
                tun.signal_strength = _parse_int(k, v)
            elif k == 'snq':
                tun.signal_to_noise_quality = _parse_int(k, v)
            elif k == 'seq':
                tun.symbol_error_quality = _parse_int(k, v)
        return tun

    def to_jsonable(self) -> JsonableDict:
        """Returns the reported components as a JSON-serializable dict, omitting missing ones."""
        result: JsonableDict = {}
        components: List[Tuple[str, Any]] = [
            ('tuner', self.tuner),
            ('device', self.device),
            ('cablecard', self.cablecard),
            ('transport_stream', self.transport_stream),
            ('network', self.network),
          ]
        for name, status in components:
            if status is not None:
                result[name] = status.to_jsonable()
        return result

    def __str__(self) -> str:
        return (f"TunerDebug(tuner={self.tuner}, device={self.device}, cablecard={self.cablecard}, "
                f"transport_stream={self.transport_stream}, network={self.network})")

    def __repr__(self) -> str:
        return str(self)
