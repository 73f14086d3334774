# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error types for the usage monitor.

Source fetchers raise these; the provider fetch chain converts every one of
them into either "try the next source" or a human-readable error string on
the snapshot. Nothing here ever escapes a provider fetch.

Taxonomy:
    SourceSkipped        - source not usable right now, not an error
        NoCredentialsError   - no credential material on disk
        NotConfiguredError   - source needs manual setup (e.g. cookies)
    TransientFetchError  - network / HTTP / parse failure
        ProcessError         - CLI spawn failure, timeout or RPC error
    AuthExpiredError     - refresh token rejected, user must log in again
    ConfigError          - malformed settings or credential file
"""

from typing import Optional


class UsageMonitorError(Exception):
    """Base class for all usage monitor errors."""


class SourceSkipped(UsageMonitorError):
    """
    A source had nothing to try.

    Treated by the fetch chain exactly like an empty result: logged as a
    failed attempt with a generic message, never added to the snapshot error.
    """


class NoCredentialsError(SourceSkipped):
    """No credential file (or no usable token in it) was found."""


class NotConfiguredError(SourceSkipped):
    """The source requires manual configuration that was not provided."""


class TransientFetchError(UsageMonitorError):
    """
    A fetch failed for a reason that may go away on the next cycle.

    Attributes:
        status_code: HTTP status code, when the failure came from a response
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProcessError(TransientFetchError):
    """A CLI child process could not be started, timed out or misbehaved."""


class AuthExpiredError(UsageMonitorError):
    """
    The refresh token was rejected by the token endpoint.

    Fatal for the OAuth source until the user re-authenticates with the
    provider's own tooling; never retried automatically.
    """


class ConfigError(UsageMonitorError):
    """Settings or a credential file are malformed."""


def mask_credential(value: Optional[str], visible: int = 4) -> str:
    """
    Mask a secret for log output.

    Args:
        value: Token, key or cookie to mask
        visible: Number of trailing characters to keep

    Returns:
        Masked representation safe for logs
    """
    if not value:
        return "<none>"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"...{value[-visible:]}"
