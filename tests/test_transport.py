"""Tests for linkspider.transport module."""

import ssl

from linkspider.transport import RelaxedCipherAdapter, TransportConfig


class TestTransportConfig:
    def test_relaxed_ciphers_by_default(self):
        session = TransportConfig().build_session("bot/1.0")
        assert isinstance(session.get_adapter("https://site.test/"), RelaxedCipherAdapter)
        assert session.headers["User-Agent"] == "bot/1.0"
        assert session.verify is True

    def test_strict_ciphers(self):
        session = TransportConfig(strict_ciphers=True).build_session("bot/1.0")
        assert not isinstance(session.get_adapter("https://site.test/"), RelaxedCipherAdapter)

    def test_ignore_invalid_ssl(self):
        session = TransportConfig(ignore_invalid_ssl=True).build_session("bot/1.0")
        assert session.verify is False
        context = session.get_adapter("https://site.test/")._ssl_context()
        assert context.verify_mode == ssl.CERT_NONE

    def test_sessions_are_independent(self):
        relaxed = TransportConfig(ignore_invalid_ssl=True).build_session("a")
        strict = TransportConfig(strict_ciphers=True).build_session("b")
        assert relaxed.verify is False
        assert strict.verify is True
