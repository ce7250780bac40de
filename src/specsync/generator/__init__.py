"""Code generation from normalized spec documents.

* :mod:`~specsync.generator.targets` -- the target capability table.
* :mod:`~specsync.generator.naming` -- identifier transforms and collision handling.
* :mod:`~specsync.generator.codegen` -- :class:`CodeGenerator`, which renders
  the Jinja2 templates in ``templates/``.
"""

from specsync.generator.codegen import CodeGenerator, coerce_style
from specsync.generator.targets import TARGETS, Capability, Target, get_target

__all__ = ["TARGETS", "Capability", "CodeGenerator", "Target", "coerce_style", "get_target"]
