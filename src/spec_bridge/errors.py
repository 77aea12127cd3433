"""Exception types raised by spec-bridge library code.

Library functions raise these and never swallow them; the CLI is the only
layer that turns them into user-facing messages.
"""


class SpecBridgeError(Exception):
    """Base class for all spec-bridge errors."""


class SpecValidationError(SpecBridgeError):
    """Input was malformed, oversized, incomplete or otherwise unusable."""


class ExternalCallError(SpecBridgeError):
    """A call to an external collaborator (platform CLI) failed."""
