"""Spec parser -- load raw documents and normalize them into the IR.

Sub-modules:

* :mod:`~specsync.parser.loader` -- I/O layer (URL, file) plus format
  detection and version detection.
* :mod:`~specsync.parser.legacy` -- Swagger 2.0 to OpenAPI 3 conversion.
* :mod:`~specsync.parser.resolver` -- JSON pointer and ``$ref`` helpers.
* :mod:`~specsync.parser.validator` -- structural checks reported as
  :class:`~specsync.models.ValidationIssue` lists.
* :mod:`~specsync.parser.normalizer` -- builds the
  :class:`~specsync.models.SpecDocument`.
"""

from specsync.parser.loader import decode_content, detect_version
from specsync.parser.normalizer import normalize

__all__ = ["decode_content", "detect_version", "normalize"]
