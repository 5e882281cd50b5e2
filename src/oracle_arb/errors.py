"""Cycle-scoped error taxonomy.

None of these terminate the block loop: fetch errors abort one cycle,
build errors exclude one candidate, submission errors are reported.
"""


class ArbitrageError(Exception):
    """Base error for the arbitrage pipeline."""


class FetchError(ArbitrageError):
    """Market or protocol state could not be read for this cycle."""


class OracleUnavailable(FetchError):
    """Oracle feed call failed or returned a malformed/stale round."""


class PoolDataInvalid(FetchError):
    """Pool reserves missing, zero or non-numeric."""


class SettlementStateUnavailable(FetchError):
    """Settlement protocol fee state could not be read."""


class CandidateBuildError(ArbitrageError):
    """A candidate's swap, settlement or bundle transaction could not be built."""


class SubmissionError(ArbitrageError):
    """Wallet or network rejected the bundle."""
