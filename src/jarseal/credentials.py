"""Password resolution for keystore and key passwords.

Build configurations should not carry passwords in clear text. A value of
the form ``{env:NAME}`` is looked up in the environment at the moment a
request is built; any other value is used as-is.
"""

import logging
import os
import re
from typing import Mapping, Optional, Protocol

from .errors import SecretDecryptionError

logger = logging.getLogger("jarseal.credentials")

_ENV_REFERENCE = re.compile(r"^\{env:([A-Za-z_][A-Za-z0-9_]*)\}$")


class SecretDecryptor(Protocol):
    """Turns a configured secret into the value handed to jarsigner."""

    def __call__(self, value: Optional[str]) -> Optional[str]: ...


class EnvironmentDecryptor:
    """Resolves ``{env:NAME}`` references from an environment mapping.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ`` at call time.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    def __call__(self, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        match = _ENV_REFERENCE.match(value)
        if match is None:
            return value

        name = match.group(1)
        env = os.environ if self._environ is None else self._environ
        try:
            return env[name]
        except KeyError as exc:
            message = f"error using security dispatcher: environment variable {name} is not set"
            logger.error(message)
            raise SecretDecryptionError(message) from exc
