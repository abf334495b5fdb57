"""Thin wrapper around the JDK ``jarsigner`` executable.

jarseal never signs anything itself. This module turns a
:class:`~jarseal.models.SigningRequest` into a ``jarsigner`` command line,
runs it, and hands back the exit code together with the command that was
run so callers can report failures.

Executable resolution, in priority order:

1. ``<java_home>/bin/jarsigner`` when a toolchain JDK is configured.
2. ``$JAVA_HOME/bin/jarsigner``.
3. ``jarsigner`` found on ``PATH``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

from .errors import ToolLaunchError
from .models import Commandline, SigningRequest, SignRequest, ToolResult, VerifyRequest

logger = logging.getLogger("jarseal.tool")


class JarSigner:
    """Builds and runs jarsigner command lines.

    Args:
        java_home: JDK to take the executable from. Falls back to
            ``$JAVA_HOME`` and then to ``PATH``.
    """

    def __init__(self, java_home: Optional[Path] = None) -> None:
        self.java_home = java_home

    # ------------------------------------------------------------------
    # Command line
    # ------------------------------------------------------------------

    def executable(self) -> str:
        """Return the jarsigner executable to run."""
        name = "jarsigner.exe" if sys.platform == "win32" else "jarsigner"
        for home in (self.java_home, os.environ.get("JAVA_HOME")):
            if home:
                candidate = Path(home) / "bin" / name
                if candidate.exists():
                    return str(candidate)
                logger.debug("No jarsigner in %s, trying next location", home)
        return name

    def build_commandline(self, request: SigningRequest) -> Commandline:
        """Translate a request into jarsigner arguments.

        Args:
            request: A sign or verify request.

        Returns:
            The command line, ready to run.
        """
        args: list[str] = []

        if request.verbose:
            args.append("-verbose")
        _add_option(args, "-keystore", request.keystore)
        _add_option(args, "-storepass", request.storepass)
        _add_option(args, "-storetype", request.storetype)
        _add_option(args, "-providerName", request.provider_name)
        _add_option(args, "-providerClass", request.provider_class)
        _add_option(args, "-providerArg", request.provider_arg)
        if request.protected_authentication_path:
            args.append("-protected")
        if request.max_memory:
            args.append(f"-J-Xmx{request.max_memory}")
        args.extend(request.arguments)

        if isinstance(request, SignRequest):
            _add_option(args, "-keypass", request.keypass)
            _add_option(args, "-sigfile", request.sigfile)
            _add_option(args, "-tsa", request.tsa_location)
            _add_option(args, "-tsacert", request.tsa_alias)
            _add_option(args, "-tsapolicyid", request.tsa_policy_id)
            _add_option(args, "-tsadigestalg", request.tsa_digest_alg)
            if request.certchain is not None:
                args.extend(["-certchain", str(request.certchain)])
        elif isinstance(request, VerifyRequest):
            args.append("-verify")
            if request.certs:
                args.append("-certs")

        args.append(str(request.archive))
        if request.alias:
            args.append(request.alias)

        return Commandline(executable=self.executable(), arguments=tuple(args))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, request: SigningRequest) -> ToolResult:
        """Run jarsigner for one request and wait for it to exit.

        The jarsigner output is passed through to this process's stdout
        and stderr.

        Args:
            request: A sign or verify request.

        Returns:
            The exit code and the command line that was run.

        Raises:
            ToolLaunchError: If the process could not be started.
        """
        commandline = self.build_commandline(request)
        cwd = request.working_directory
        try:
            completed = subprocess.run(
                commandline.as_list(),
                cwd=str(cwd) if cwd is not None else None,
                check=False,
            )
        except OSError as exc:
            raise ToolLaunchError(
                f"Unable to start {commandline.executable}: {exc}"
            ) from exc

        return ToolResult(exit_code=completed.returncode, commandline=commandline)


def _add_option(args: list[str], flag: str, value: Optional[str]) -> None:
    if value:
        args.extend([flag, value])
