"""Error types raised by jarseal.

Every fatal condition surfaces as a :class:`JarsignerError` (or one of its
subclasses) carrying a human-readable message. The original cause, where
there is one, is chained with ``raise ... from exc`` so the CLI can show a
short message while the traceback keeps the full story.
"""


class JarsignerError(Exception):
    """A fatal error that aborts the current jarsigner run."""


class ToolLaunchError(JarsignerError):
    """The external jarsigner tool could not be started at all.

    Distinct from a non-zero exit: a launch failure means no process ran.
    """


class InterruptedWaitError(JarsignerError):
    """A backoff sleep or the wait for parallel workers was interrupted."""


class SecretDecryptionError(JarsignerError):
    """A configured password could not be resolved."""
