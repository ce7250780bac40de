"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to one error category and is referenced by the
corresponding :class:`~specsync.exceptions.SpecsyncError` subclass.  The
tool-calling layer and shell wrappers can inspect the exit code to learn
the failure class without parsing stderr.

Example::

    $ specsync diff old.yaml new.yaml
    $ echo $?
    7   # EXIT_SPEC_PARSE_ERROR -- one of the documents failed to normalize
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_CONFIG_ERROR = 2
"""Invalid arguments, unknown generation target, or an invalid style option."""

EXIT_BREAKING_CHANGES = 3
"""``specsync diff --fail-on-breaking`` found at least one breaking change."""

EXIT_FILESYSTEM_ERROR = 4
"""A local file could not be found, read, or written."""

EXIT_CACHE_ERROR = 5
"""The cache directory could not be used."""

EXIT_NETWORK_ERROR = 6
"""A network-level error occurred (timeout, connection refused, non-2xx status)."""

EXIT_SPEC_PARSE_ERROR = 7
"""The spec document could not be parsed or failed structural validation."""

EXIT_CODEGEN_ERROR = 8
"""Code generation could not produce output for the requested target."""
