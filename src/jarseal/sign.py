"""Signing: retries with backoff, TSA rotation and parallel workers.

Every archive gets up to ``max_tries`` jarsigner invocations. After a
failed attempt the failure is counted against the TSA server that attempt
used, the worker backs off, and the next attempt goes to whichever server
has failed least. Only the last attempt's exit code ends up in the error.

Archives are spread over ``thread_count`` workers; see
:mod:`jarseal.dispatcher`.
"""

import logging
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional, Sequence

from .archives import unsign_archive
from .backoff import WaitStrategy, event_sleeper, wait_after_failure
from .credentials import SecretDecryptor
from .dispatcher import dispatch
from .errors import JarsignerError
from .models import SignConfig, SigningRequest, SignRequest
from .processor import ArchiveProcessor
from .tool import JarSigner
from .tsa import TsaSelector, TsaServer

logger = logging.getLogger("jarseal.sign")


def _with_tsa(request: SigningRequest, server: TsaServer) -> SigningRequest:
    return request.model_copy(
        update={
            "tsa_location": server.url,
            "tsa_alias": server.alias,
            "tsa_policy_id": server.policy_id,
            "tsa_digest_alg": server.digest_alg,
        }
    )


class SignProcessor(ArchiveProcessor):
    """Signs archives with jarsigner.

    Args:
        config: Signing configuration.
        jarsigner: Tool wrapper.
        decryptor: Password resolver.
        wait_strategy: Called between attempts. Defaults to a real,
            cancellable exponential backoff.
        cancel_event: Set to interrupt backoff sleeps and the wait for
            parallel workers. A caller-supplied event is never cleared, so
            once set it interrupts every later run too. Without one, each
            run gets a fresh event.
    """

    config: SignConfig

    def __init__(
        self,
        config: SignConfig,
        jarsigner: Optional[JarSigner] = None,
        decryptor: Optional[SecretDecryptor] = None,
        wait_strategy: Optional[WaitStrategy] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        super().__init__(config, jarsigner, decryptor)
        self._owns_cancel_event = cancel_event is None
        self.cancel_event = cancel_event or threading.Event()
        self.wait_strategy: WaitStrategy = wait_strategy or self.default_wait_strategy
        self.max_tries = config.max_tries
        self.max_retry_delay_seconds = config.max_retry_delay_seconds
        self.thread_count = config.thread_count
        self.tsa_selector = TsaSelector(
            config.tsa, config.tsacert, config.tsapolicyid, config.tsadigestalg
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_parameters(self) -> None:
        """Clamp retry and thread settings and warn about odd TSA setups."""
        super().validate_parameters()
        cfg = self.config

        if self.max_tries < 1:
            logger.warning(
                "Invalid maxTries value. Was '%d' but should be >= 1", self.max_tries
            )
            self.max_tries = 1

        if self.max_retry_delay_seconds < 0:
            logger.warning(
                "Invalid maxRetryDelaySeconds value. Was '%d' but should be >= 0",
                self.max_retry_delay_seconds,
            )
            self.max_retry_delay_seconds = 0

        if self.thread_count < 1:
            logger.warning(
                "Invalid threadCount value. Was '%d' but should be >= 1", self.thread_count
            )
            self.thread_count = 1

        if cfg.tsa and cfg.tsacert:
            logger.warning(
                "Usage of both -tsa and -tsacert is undefined according to jarsigner documentation"
            )

        server_count = max(len(cfg.tsa), len(cfg.tsacert))
        if len(cfg.tsapolicyid) > server_count:
            logger.warning(
                "Too many (%d) number of OIDs given, but only %d TSA URL(s) or TSA "
                "certificate alias(es) specified",
                len(cfg.tsapolicyid),
                server_count,
            )

        if self.max_tries == 1:
            if len(cfg.tsa) > 1:
                logger.warning(
                    "%d TSA URLs specified. Only first will be used because maxTries is set to 1",
                    len(cfg.tsa),
                )
            if len(cfg.tsacert) > 1:
                logger.warning(
                    "%d TSA certificate aliases specified. Only first will be used because "
                    "maxTries is set to 1",
                    len(cfg.tsacert),
                )

    # ------------------------------------------------------------------
    # Pipeline hooks
    # ------------------------------------------------------------------

    def pre_process_archive(self, archive: Path) -> None:
        if self.config.remove_existing_signatures:
            try:
                unsign_archive(archive)
            except OSError as exc:
                raise JarsignerError(f"Failed to unsign archive {archive}: {exc}") from exc

    def create_request(self, archive: Path, common: dict[str, Any]) -> SignRequest:
        cfg = self.config
        return SignRequest(
            **common,
            keypass=self.decrypt(cfg.keypass),
            sigfile=cfg.sigfile,
            certchain=cfg.certchain,
        )

    def process_archives(self, archives: Sequence[Path]) -> None:
        """Sign archives on up to ``thread_count`` workers."""
        if self._owns_cancel_event:
            self.cancel_event = threading.Event()
        dispatch(self.process_archive, archives, self.thread_count, self.cancel_event)

    def execute_jarsigner(self, request: SigningRequest) -> None:
        """Invoke jarsigner until it succeeds or ``max_tries`` is used up.

        Raises:
            JarsignerError: With the last attempt's exit code if every
                attempt failed.
            InterruptedWaitError: If a backoff sleep was interrupted.
        """
        server = self.tsa_selector.select_server()
        request = _with_tsa(request, server)

        for attempt in range(self.max_tries):
            result = self.jarsigner.execute(request)
            if result.is_success:
                return

            self.tsa_selector.report_failure(server)

            if attempt < self.max_tries - 1:
                logger.warning(
                    "jarsigner failed for %s with exit code %d (attempt %d of %d), retrying",
                    request.archive,
                    result.exit_code,
                    attempt + 1,
                    self.max_tries,
                )
                self.wait_strategy(attempt, timedelta(seconds=self.max_retry_delay_seconds))
                server = self.tsa_selector.select_server()
                request = _with_tsa(request, server)
            else:
                raise JarsignerError(self.failure_message(result, request))

    # ------------------------------------------------------------------
    # Diagnostics / backoff
    # ------------------------------------------------------------------

    def secrets(self, request: SigningRequest) -> list[Optional[str]]:
        values = super().secrets(request)
        values.append(self.config.keypass)
        if isinstance(request, SignRequest):
            values.append(request.keypass)
        return values

    def default_wait_strategy(self, attempt: int, max_retry_delay: timedelta) -> None:
        """Real exponential backoff, woken early by :attr:`cancel_event`."""
        wait_after_failure(attempt, max_retry_delay, event_sleeper(self.cancel_event))
