"""The per-archive jarsigner pipeline shared by signing and verification.

For every archive the pipeline runs the same fixed steps:

1. :meth:`ArchiveProcessor.pre_process_archive` (strip old signatures,
   check that the archive is signed, ...).
2. Build an immutable request from the static configuration: credentials,
   provider settings, working directory, user arguments plus an injected
   ``-J-Dfile.encoding`` and the active proxy.
3. Resolve ``{env:NAME}`` password references.
4. Hand the request to :meth:`ArchiveProcessor.execute_jarsigner`, which
   the sign and verify processors implement with and without retries.

Any fatal condition raises :class:`~jarseal.errors.JarsignerError`.
"""

import locale
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Sequence

from .archives import find_archives
from .credentials import EnvironmentDecryptor, SecretDecryptor
from .errors import JarsignerError, ToolLaunchError
from .models import Commandline, JarsignerConfig, SigningRequest, ToolResult
from .tool import JarSigner

logger = logging.getLogger("jarseal.processor")

FILE_ENCODING_ARGUMENT = "-J-Dfile.encoding="


class ArchiveProcessor(ABC):
    """Runs jarsigner once per archive.

    Args:
        config: Run configuration.
        jarsigner: Tool wrapper. Defaults to one bound to ``config.java_home``.
        decryptor: Password resolver. Defaults to :class:`EnvironmentDecryptor`.
    """

    def __init__(
        self,
        config: JarsignerConfig,
        jarsigner: Optional[JarSigner] = None,
        decryptor: Optional[SecretDecryptor] = None,
    ) -> None:
        self.config = config
        self.jarsigner = jarsigner or JarSigner(config.java_home)
        self.decrypt = decryptor or EnvironmentDecryptor()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def execute(self, candidates: Sequence[Path] = ()) -> int:
        """Validate the configuration, discover archives and process them.

        Args:
            candidates: Archive paths given explicitly, in addition to the
                configured archive directory.

        Returns:
            Number of archives processed.

        Raises:
            JarsignerError: On the first fatal failure.
        """
        if self.config.skip:
            logger.info("Skipping jarsigner execution")
            return 0

        self.validate_parameters()

        try:
            archives = find_archives(self.config, extra=candidates)
        except OSError as exc:
            raise JarsignerError(
                f"Failed to scan archive directory for JARs: {exc}"
            ) from exc

        self.process_archives(archives)
        logger.info("%d archive(s) processed", len(archives))
        return len(archives)

    def validate_parameters(self) -> None:
        """Check and normalize the configuration before any archive is touched."""

    def process_archives(self, archives: Sequence[Path]) -> None:
        """Process archives one after the other, stopping at the first failure."""
        for archive in archives:
            self.process_archive(archive)

    # ------------------------------------------------------------------
    # Per-archive pipeline
    # ------------------------------------------------------------------

    def process_archive(self, archive: Path) -> None:
        """Run the full pipeline for one archive.

        Raises:
            JarsignerError: If pre-processing fails, jarsigner cannot be
                started, or jarsigner ultimately reports a failure.
        """
        self.pre_process_archive(archive)

        if self.config.verbose:
            logger.info("Processing %s", archive)
        else:
            logger.debug("Processing %s", archive)

        request = self.create_request(archive, self._common_request_fields(archive))

        try:
            self.execute_jarsigner(request)
        except ToolLaunchError as exc:
            raise JarsignerError(f"Failed executing 'jarsigner' - {exc}") from exc

    def pre_process_archive(self, archive: Path) -> None:
        """Hook run before the request is built. Does nothing by default."""

    @abstractmethod
    def create_request(self, archive: Path, common: dict[str, Any]) -> SigningRequest:
        """Build the request for one archive from the shared fields."""

    @abstractmethod
    def execute_jarsigner(self, request: SigningRequest) -> None:
        """Invoke jarsigner for a request, raising JarsignerError on failure."""

    def _common_request_fields(self, archive: Path) -> dict[str, Any]:
        cfg = self.config
        return {
            "archive": archive,
            "verbose": cfg.verbose,
            "keystore": cfg.keystore,
            "storetype": cfg.storetype,
            "storepass": self.decrypt(cfg.storepass),
            "alias": cfg.alias,
            "provider_name": cfg.provider_name,
            "provider_class": cfg.provider_class,
            "provider_arg": cfg.provider_arg,
            "max_memory": cfg.max_memory,
            "arguments": tuple(self._build_arguments()),
            "protected_authentication_path": cfg.protected_authentication_path,
            "working_directory": cfg.working_directory,
        }

    def _build_arguments(self) -> list[str]:
        """User arguments plus file encoding and proxy JVM properties."""
        arguments = list(self.config.arguments)

        if not any(a.strip().startswith(FILE_ENCODING_ARGUMENT) for a in arguments):
            arguments.append(FILE_ENCODING_ARGUMENT + locale.getpreferredencoding(False))

        proxy = self.config.proxy
        if proxy is not None and proxy.host:
            for scheme in ("http", "https", "ftp"):
                arguments.append(f"-J-D{scheme}.proxyHost={proxy.host}")
            if proxy.port > 0:
                for scheme in ("http", "https", "ftp"):
                    arguments.append(f"-J-D{scheme}.proxyPort={proxy.port}")
            if proxy.non_proxy_hosts:
                # No shell between us and the JVM, so the value is not quoted
                arguments.append(f"-J-Dhttp.nonProxyHosts={proxy.non_proxy_hosts}")
                arguments.append(f"-J-Dftp.nonProxyHosts={proxy.non_proxy_hosts}")

        return arguments

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def secrets(self, request: SigningRequest) -> list[Optional[str]]:
        """Values that must never appear in logs or error messages."""
        return [self.config.storepass, request.storepass]

    def get_commandline_info(self, commandline: Commandline, request: SigningRequest) -> str:
        """Render a command line with all passwords redacted."""
        return commandline.redacted(*self.secrets(request))

    def failure_message(self, result: ToolResult, request: SigningRequest) -> str:
        """Error message for a non-zero jarsigner exit."""
        info = self.get_commandline_info(result.commandline, request)
        return f"Failed executing '{info}' - exitcode {result.exit_code}"
