"""Exceptions raised by the beacon sender and its transport."""


class BeaconError(Exception):
    """Base class for beacon errors"""


class UsageError(BeaconError, RuntimeError):
    """The sender was asked to do something its current state does not allow"""


class TransportError(BeaconError, OSError):
    """A datagram could not be addressed or sent"""
