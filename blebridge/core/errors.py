"""Domain-specific errors for blebridge."""


class BridgeError(Exception):
    """Base error for blebridge."""


class InvalidAddressFormat(BridgeError):
    """Raised when a device address is not six hex octet pairs."""


class InvalidUUIDFormat(BridgeError):
    """Raised when a GATT identifier is not a 16-bit, 32-bit, or 128-bit UUID."""


class PayloadError(BridgeError):
    """Raised when a raw print payload cannot be decoded."""


class ConfigLoadError(BridgeError):
    """Raised when reading the configuration file fails."""


class ConfigValidationError(BridgeError):
    """Raised when configuration does not conform to schema or semantics."""


class ScanError(BridgeError):
    """Base scan error."""


class ScanBusy(ScanError):
    """Raised when another scan pass is already running."""


class ScanTimeout(ScanError):
    """Raised when the discovery stream does not acknowledge the stop in time."""


class SessionError(BridgeError):
    """Base connection session error."""


class NotConnected(SessionError):
    """Raised when an operation needs a live session and there is none."""


class LinkUnverified(SessionError):
    """Raised when a link opened but its service discovery probe failed."""


class ResolutionError(BridgeError):
    """Base error for GATT identifiers that do not resolve on the device."""


class ServiceNotFound(ResolutionError):
    """Raised when the target service is not exposed by the device."""


class CharacteristicNotFound(ResolutionError):
    """Raised when the target characteristic is not exposed by the service."""


class AdapterError(BridgeError):
    """Opaque failure reported by the radio stack."""


class FragmentWriteError(AdapterError):
    """Raised when writing one fragment of a payload fails.

    Fragments before ``fragment_index`` were delivered; nothing after it was sent.
    """

    def __init__(
        self,
        message: str,
        *,
        fragment_index: int,
        fragment_count: int,
        bytes_sent: int,
        total_bytes: int,
    ) -> None:
        super().__init__(message)
        self.fragment_index = fragment_index
        self.fragment_count = fragment_count
        self.bytes_sent = bytes_sent
        self.total_bytes = total_bytes
