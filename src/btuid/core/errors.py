"""Exception types raised by btuid."""

from __future__ import annotations


class BtuidError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(BtuidError, ValueError):
    """Generator parameters cannot produce a usable allocator."""


class PersistenceError(BtuidError, RuntimeError):
    """The state file exists but cannot be read, parsed or created."""


class AddressSpaceExhausted(BtuidError, RuntimeError):
    """No further identifier can be allocated without repeating one."""


class CodecError(BtuidError, ValueError):
    """Input to the obfuscation codec is malformed."""
