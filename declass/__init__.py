"""
Declass -- Declaration-Level Java Class Decompiler
==================================================

Declass reconstructs Java-like source declarations from compiled JVM
class files.  Method and constructor bodies are rendered as fixed
placeholder statements; no control flow is recovered.

Modules:
    - declass.parsers: class file, descriptor, signature and bytecode decoding
    - declass.core.types: the memoising type registry
    - declass.core.members: fields, methods, constructors and parameters
    - declass.core.imports: import computation and package elision
    - declass.core.generator: configuration-driven source rendering
    - declass.core.engine: batch decompilation with per-class isolation
    - declass.output: Rich console display
    - declass.cli: Click-based command-line interface

References:
    - The Java Virtual Machine Specification, Java SE 21 Edition.
    - The Java Language Specification, Java SE 21 Edition.
"""

__version__ = "1.0.0"
__tool_name__ = "declass"
