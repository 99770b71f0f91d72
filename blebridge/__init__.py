"""BLE peripheral bridge: scanning, a single verified session, and paced GATT writes."""

__version__ = "0.1.0"
