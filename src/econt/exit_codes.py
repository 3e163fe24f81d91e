"""Numeric process exit codes used by the ``econt`` command-line tool.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~econt.exceptions.EcontError` subclass.  Shell
wrappers can inspect the exit code to tell a missing credential apart from
an unreachable API without parsing stderr.
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, unknown filter fields, or an operation the configuration forbids."""

EXIT_AUTH_FAILURE = 3
"""The Econt API rejected the configured credentials."""

EXIT_NOT_FOUND = 4
"""The requested resource (shipment, office) was not found."""

EXIT_SERVER_ERROR = 5
"""The Econt API returned an error response."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_EXPORT_ABORTED = 8
"""A bulk nomenclature export stopped before completing every step."""

EXIT_CACHE_CORRUPT = 9
"""A cached entry could not be decoded."""
