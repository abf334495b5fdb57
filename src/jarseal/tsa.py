"""Time Stamping Authority selection for signing retries.

Several TSA servers can be configured. Each keeps a failure counter, and
every new attempt goes to the server that has failed least so far, with
ties broken by configuration order. With servers ``A, B, C`` and no
failures, ``A`` is always chosen; once ``A`` fails, ``B`` takes over.

The selection is best effort. Counters are bumped under a tiny per-server
lock, but :meth:`TsaSelector.select_server` reads them without any lock,
so two workers may briefly pick the same server or miss a failure that was
just recorded on another thread.

The caller keeps the server it was given and hands it back to
:meth:`TsaSelector.report_failure`; there is no hidden per-thread state.
"""

import logging
import threading
from itertools import zip_longest
from typing import Optional, Sequence

logger = logging.getLogger("jarseal.tsa")


class TsaServer:
    """One configured timestamp server and its failure count.

    Attributes:
        url: TSA URL (``-tsa``), if any.
        alias: Keystore alias of the TSA certificate (``-tsacert``), if any.
        policy_id: TSA policy OID (``-tsapolicyid``), if any.
        digest_alg: Digest algorithm for the TSA request (``-tsadigestalg``).
    """

    def __init__(
        self,
        url: Optional[str] = None,
        alias: Optional[str] = None,
        policy_id: Optional[str] = None,
        digest_alg: Optional[str] = None,
    ) -> None:
        self.url = url
        self.alias = alias
        self.policy_id = policy_id
        self.digest_alg = digest_alg
        self._failures = 0
        self._lock = threading.Lock()

    @property
    def failure_count(self) -> int:
        """Failures recorded so far. Read without locking."""
        return self._failures

    def increment(self) -> int:
        """Record one failure and return the new count."""
        with self._lock:
            self._failures += 1
            return self._failures

    def __repr__(self) -> str:
        return (
            f"TsaServer(url={self.url!r}, alias={self.alias!r}, "
            f"policy_id={self.policy_id!r}, failures={self._failures})"
        )


class TsaSelector:
    """Picks the least failed TSA server.

    Servers are built position by position from the three lists, up to the
    longest one; a list that is shorter contributes None at the missing
    positions. If all lists are empty a single empty server is used so that
    there is always something to select.

    Args:
        tsa: TSA URLs.
        tsacert: TSA certificate aliases.
        tsapolicyid: TSA policy OIDs.
        tsadigestalg: Digest algorithm shared by every server.
    """

    def __init__(
        self,
        tsa: Sequence[str] = (),
        tsacert: Sequence[str] = (),
        tsapolicyid: Sequence[str] = (),
        tsadigestalg: Optional[str] = None,
    ) -> None:
        servers = [
            TsaServer(url, alias, policy_id, tsadigestalg)
            for url, alias, policy_id in zip_longest(tsa, tsacert, tsapolicyid)
        ]
        if not servers:
            servers.append(TsaServer())
        self._servers: tuple[TsaServer, ...] = tuple(servers)

    @property
    def servers(self) -> tuple[TsaServer, ...]:
        """The configured servers, in configuration order."""
        return self._servers

    def select_server(self) -> TsaServer:
        """Return the first server with the lowest failure count."""
        best = self._servers[0]
        for server in self._servers[1:]:
            if server.failure_count < best.failure_count:
                best = server
        return best

    def report_failure(self, server: Optional[TsaServer]) -> None:
        """Count a failed attempt against a previously selected server.

        Args:
            server: The server returned by :meth:`select_server`. None means
                nothing was selected yet and is ignored.
        """
        if server is None:
            return
        count = server.increment()
        logger.debug("TSA server %s now has %d failure(s)", server.url or server.alias, count)
