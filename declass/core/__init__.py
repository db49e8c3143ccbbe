"""
Declass Core Module
===================

The type registry, member model, import resolver, source generator and
batch engine.  Import the submodules directly, e.g.
``from declass.core.types import Registry``.
"""
