"""Verification: one ``jarsigner -verify`` per archive, no retries.

Archives are verified sequentially and the first failure ends the run, so
archives after a broken one are never handed to jarsigner.
"""

import logging
from pathlib import Path
from typing import Any

from .archives import is_archive_signed
from .errors import JarsignerError
from .models import SigningRequest, VerifyConfig, VerifyRequest
from .processor import ArchiveProcessor

logger = logging.getLogger("jarseal.verify")


class VerifyProcessor(ArchiveProcessor):
    """Verifies archive signatures with jarsigner."""

    config: VerifyConfig

    def pre_process_archive(self, archive: Path) -> None:
        """Fail early on unsigned archives when ``error_when_not_signed`` is set."""
        if not self.config.error_when_not_signed:
            return
        try:
            signed = is_archive_signed(archive)
        except OSError as exc:
            raise JarsignerError(
                f"Failed to check if archive {archive} is signed: {exc}"
            ) from exc
        if not signed:
            raise JarsignerError(f"Archive '{archive}' is not signed")

    def create_request(self, archive: Path, common: dict[str, Any]) -> VerifyRequest:
        return VerifyRequest(**common, certs=self.config.certs)

    def execute_jarsigner(self, request: SigningRequest) -> None:
        result = self.jarsigner.execute(request)
        if not result.is_success:
            raise JarsignerError(self.failure_message(result, request))
        logger.debug("Verified %s", request.archive)
