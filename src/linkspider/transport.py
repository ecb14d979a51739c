"""
HTTP transport configuration: cipher relaxation and certificate checks.

Everything is scoped to the ``requests.Session`` built here; no process-wide
TLS or environment state is touched.
"""
from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.ssl_ import create_urllib3_context

LOGGER = logging.getLogger(__name__)

RELAXED_CIPHERS = "ALL:@SECLEVEL=0"


class RelaxedCipherAdapter(HTTPAdapter):
    """HTTPS adapter whose SSL context accepts any cipher OpenSSL knows."""

    def __init__(self, *args, verify: bool = True, **kwargs):
        # init_poolmanager runs inside HTTPAdapter.__init__
        self._verify = verify
        super().__init__(*args, **kwargs)

    def _ssl_context(self) -> ssl.SSLContext:
        try:
            context = create_urllib3_context(ciphers=RELAXED_CIPHERS)
        except ssl.SSLError:
            # OpenSSL builds without security levels
            context = create_urllib3_context(ciphers="ALL")
        if not self._verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        pool_kwargs["ssl_context"] = self._ssl_context()
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        proxy_kwargs["ssl_context"] = self._ssl_context()
        return super().proxy_manager_for(proxy, **proxy_kwargs)


@dataclass(slots=True, frozen=True)
class TransportConfig:
    strict_ciphers: bool = False
    ignore_invalid_ssl: bool = False
    pool_size: int = 10

    def build_session(self, user_agent: str) -> requests.Session:
        """Create the session every fetch of one crawl goes through."""
        session = requests.Session()
        session.headers["User-Agent"] = user_agent

        if not self.strict_ciphers:
            adapter = RelaxedCipherAdapter(
                verify=not self.ignore_invalid_ssl,
                pool_connections=self.pool_size,
                pool_maxsize=self.pool_size,
            )
            session.mount("https://", adapter)
            LOGGER.info("Relaxing cipher list to allow any cipher.")
        else:
            adapter = HTTPAdapter(pool_connections=self.pool_size, pool_maxsize=self.pool_size)
            session.mount("https://", adapter)
        session.mount("http://", HTTPAdapter(pool_connections=self.pool_size, pool_maxsize=self.pool_size))

        if self.ignore_invalid_ssl:
            session.verify = False
            LOGGER.info("Ignoring invalid certificates.")

        return session
