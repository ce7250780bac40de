"""Structural diff with breaking-change classification.

* :mod:`~specsync.diff.engine` -- :func:`diff_specs` and :func:`summarize`.
* :mod:`~specsync.diff.rules` -- the fixed classification policy.
"""

from specsync.diff.engine import diff_specs, summarize

__all__ = ["diff_specs", "summarize"]
