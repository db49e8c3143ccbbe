"""Shared fixtures: an in-memory class path seeded with JDK stubs."""

from __future__ import annotations

import pytest

from classfile_builder import ClassBuilder, jdk_builders
from declass.core.classpath import InMemoryClassPath
from declass.core.types import Registry
from shared.logger import DeclassLogger


@pytest.fixture
def jdk_classes() -> dict[str, bytes]:
    return {builder.name: builder.build() for builder in jdk_builders()}


@pytest.fixture
def class_path(jdk_classes: dict[str, bytes]) -> InMemoryClassPath:
    return InMemoryClassPath(jdk_classes)


@pytest.fixture
def logger() -> DeclassLogger:
    return DeclassLogger("test", log_level="DEBUG", console_output=False)


@pytest.fixture
def registry(class_path: InMemoryClassPath, logger: DeclassLogger) -> Registry:
    return Registry(class_path, logger=logger)


@pytest.fixture
def add_class(class_path: InMemoryClassPath):
    """Register builders on the in-memory class path."""

    def add(*builders: ClassBuilder) -> None:
        for builder in builders:
            class_path.add(builder.name, builder.build())

    return add
