from __future__ import annotations


class OracleError(Exception):
    """Base class for failures talking to the external search engine."""


class OracleUnavailable(OracleError):
    """The engine could not be started, closed its pipe, or failed the handshake."""


class OracleTimeout(OracleError):
    """The engine did not answer within its time budget."""
