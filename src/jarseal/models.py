"""Pydantic models for jarseal configuration, requests and results.

Three families of models live here:

- Configuration (:class:`JarsignerConfig`, :class:`SignConfig`,
  :class:`VerifyConfig`, :class:`ProxySettings`): what the user asked for.
  Values are taken as given; range checks with warnings happen in the
  processors so that a bad ``maxTries`` is logged rather than rejected.
- Requests (:class:`SignRequest`, :class:`VerifyRequest`): one immutable
  value per jarsigner invocation, built from the configuration plus a
  single archive.
- Results (:class:`Commandline`, :class:`ToolResult`): what came back from
  the external tool.
"""

import os
import shlex
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field


DEFAULT_INCLUDES: list[str] = ["**/*.?ar"]


# ---------------------------------------------------------------------------
# Proxy
# ---------------------------------------------------------------------------


class ProxySettings(BaseModel):
    """Active network proxy, forwarded to jarsigner as ``-J-D`` properties.

    Attributes:
        host: Proxy host name.
        port: Proxy port, 0 when unknown.
        non_proxy_hosts: ``|`` separated host patterns that bypass the proxy.
    """

    host: str
    port: int = 0
    non_proxy_hosts: Optional[str] = None

    @classmethod
    def from_environment(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> Optional["ProxySettings"]:
        """Derive the active proxy from the conventional environment variables.

        ``HTTPS_PROXY`` wins over ``HTTP_PROXY``; lower-case spellings are
        honoured too. ``NO_PROXY`` is converted from a comma separated list
        to the ``|`` separated form the JVM expects.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            The proxy settings, or None if no proxy host is configured.
        """
        env = os.environ if environ is None else environ
        raw = (
            env.get("HTTPS_PROXY")
            or env.get("https_proxy")
            or env.get("HTTP_PROXY")
            or env.get("http_proxy")
        )
        if not raw:
            return None

        parts = urlsplit(raw if "://" in raw else f"http://{raw}")
        if not parts.hostname:
            return None

        no_proxy = env.get("NO_PROXY") or env.get("no_proxy")
        non_proxy_hosts = None
        if no_proxy:
            hosts = [h.strip() for h in no_proxy.split(",") if h.strip()]
            non_proxy_hosts = "|".join(hosts) or None

        return cls(
            host=parts.hostname,
            port=parts.port or 0,
            non_proxy_hosts=non_proxy_hosts,
        )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class JarsignerConfig(BaseModel):
    """Settings shared by the sign and verify commands.

    Attributes:
        verbose: Pass ``-verbose`` to jarsigner and log per-archive progress
            at INFO instead of DEBUG.
        keystore: Keystore location (file path or URL).
        storetype: Keystore type.
        storepass: Keystore password, possibly a ``{env:NAME}`` reference.
        alias: Key alias in the keystore.
        provider_name: Cryptographic service provider name.
        provider_class: Provider master class file.
        provider_arg: Provider argument.
        max_memory: Maximum heap for the jarsigner JVM (``-J-Xmx``).
        arguments: Extra arguments appended to the jarsigner command line.
        protected_authentication_path: Pass ``-protected``.
        working_directory: Directory jarsigner runs in.
        skip: Do nothing at all.
        archive: A single archive to process; disables directory discovery.
        archive_directory: Directory to scan for archives.
        includes: Glob patterns (relative to archive_directory) to include.
        excludes: Glob patterns to exclude.
        java_home: JDK to take the jarsigner executable from.
        proxy: Network proxy forwarded to the jarsigner JVM.
    """

    verbose: bool = False
    keystore: Optional[str] = None
    storetype: Optional[str] = None
    storepass: Optional[str] = None
    alias: Optional[str] = None
    provider_name: Optional[str] = None
    provider_class: Optional[str] = None
    provider_arg: Optional[str] = None
    max_memory: Optional[str] = None
    arguments: list[str] = Field(default_factory=list)
    protected_authentication_path: bool = False
    working_directory: Optional[Path] = None
    skip: bool = False
    archive: Optional[Path] = None
    archive_directory: Optional[Path] = None
    includes: list[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDES))
    excludes: list[str] = Field(default_factory=list)
    java_home: Optional[Path] = None
    proxy: Optional[ProxySettings] = None

    model_config = {"populate_by_name": True}


class SignConfig(JarsignerConfig):
    """Settings for the sign command.

    Attributes:
        keypass: Private key password, possibly a ``{env:NAME}`` reference.
        sigfile: Base name for the generated .SF and signature block files.
        certchain: Certificate chain file.
        remove_existing_signatures: Strip old signatures before signing.
        tsa: TSA URLs, one per timestamp server.
        tsacert: TSA certificate aliases, one per timestamp server.
        tsapolicyid: TSA policy OIDs, matched to servers by position.
        tsadigestalg: Digest algorithm used for all TSA requests.
        max_tries: Invocations per archive before giving up.
        max_retry_delay_seconds: Upper bound on the backoff between tries.
        thread_count: Archives signed in parallel.
    """

    keypass: Optional[str] = None
    sigfile: Optional[str] = None
    certchain: Optional[Path] = None
    remove_existing_signatures: bool = False
    tsa: list[str] = Field(default_factory=list)
    tsacert: list[str] = Field(default_factory=list)
    tsapolicyid: list[str] = Field(default_factory=list)
    tsadigestalg: Optional[str] = None
    max_tries: int = 1
    max_retry_delay_seconds: int = 0
    thread_count: int = 1


class VerifyConfig(JarsignerConfig):
    """Settings for the verify command.

    Attributes:
        certs: Show certificate details (``-certs``).
        error_when_not_signed: Fail if an archive carries no signature.
    """

    certs: bool = False
    error_when_not_signed: bool = False


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SigningRequest(BaseModel):
    """Everything needed for one jarsigner invocation on one archive."""

    archive: Path
    verbose: bool = False
    keystore: Optional[str] = None
    storetype: Optional[str] = None
    storepass: Optional[str] = None
    alias: Optional[str] = None
    provider_name: Optional[str] = None
    provider_class: Optional[str] = None
    provider_arg: Optional[str] = None
    max_memory: Optional[str] = None
    arguments: tuple[str, ...] = ()
    protected_authentication_path: bool = False
    working_directory: Optional[Path] = None

    model_config = {"frozen": True}


class SignRequest(SigningRequest):
    """A jarsigner signing request, including the selected TSA server."""

    keypass: Optional[str] = None
    sigfile: Optional[str] = None
    certchain: Optional[Path] = None
    tsa_location: Optional[str] = None
    tsa_alias: Optional[str] = None
    tsa_policy_id: Optional[str] = None
    tsa_digest_alg: Optional[str] = None


class VerifyRequest(SigningRequest):
    """A jarsigner ``-verify`` request."""

    certs: bool = False


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


REDACTED = "*****"


def redact(text: str, *secrets: Optional[str]) -> str:
    """Replace every non-empty secret in text with :data:`REDACTED`.

    Longer secrets are replaced first so that a password containing
    another one is masked as a whole.

    Args:
        text: Text that may contain passwords.
        *secrets: Values to hide. None and empty strings are ignored.

    Returns:
        The redacted text.
    """
    for secret in sorted({s for s in secrets if s}, key=len, reverse=True):
        text = text.replace(secret, REDACTED)
    return text


class Commandline(BaseModel):
    """An executable plus its arguments, printable for diagnostics."""

    executable: str
    arguments: tuple[str, ...] = ()

    model_config = {"frozen": True}

    def as_list(self) -> list[str]:
        """Return the argv list handed to the operating system."""
        return [self.executable, *self.arguments]

    def redacted(self, *secrets: Optional[str]) -> str:
        """Render like ``str()``, with secrets masked in each argument.

        Masking happens before shell quoting, so a password with quotes or
        spaces is hidden just like any other. A masked argument renders as
        ``'*****'``.
        """
        return shlex.join(redact(arg, *secrets) for arg in self.as_list())

    def __str__(self) -> str:
        return shlex.join(self.as_list())


class ToolResult(BaseModel):
    """Outcome of one jarsigner invocation.

    Attributes:
        exit_code: Process exit status, 0 on success.
        commandline: The command that was run.
    """

    exit_code: int
    commandline: Commandline

    model_config = {"frozen": True}

    @property
    def is_success(self) -> bool:
        """Return True if jarsigner exited with status 0."""
        return self.exit_code == 0
