"""
Rendering Configuration
=======================

Flat bag of named toggles read by :class:`declass.core.generator.SourceCodeGenerator`.
Instances are built programmatically, or from the ``[decompiler.options]``
table of ``declass.toml`` via :meth:`Configuration.from_mapping`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Mapping

from declass.core.errors import ConfigurationError

LocalVariableNameGenerator = Callable[[str, int], str]

# Toggle name -> label printed in the configuration comment, in print order
TOGGLE_LABELS: dict[str, str] = {
    "annotating_deprecated_methods": "AnnotatingDeprecatedMethods",
    "annotating_overridden_methods": "AnnotatingOverriddenMethods",
    "discarding_abstract_interface_method_modifier": "DiscardingAbstractInterfaceMethodModifier",
    "discarding_extends_object": "DiscardingExtendsObject",
    "discarding_public_interface_method_modifier": "DiscardingPublicInterfaceMethodModifier",
    "discarding_unnecessary_package_names": "DiscardingUnnecessaryPackageNames",
    "displaying_attribute_infos": "DisplayingAttributeInfos",
    "displaying_configuration_parameters": "DisplayingConfigurationParameters",
    "displaying_instructions": "DisplayingInstructions",
    "importing_types": "ImportingTypes",
    "separating_groups": "SeparatingGroups",
    "sorting_groups": "SortingGroups",
}


def default_local_variable_name(type_name: str, index: int) -> str:
    """``java.lang.String[]`` at index 0 -> ``stringArray0``."""
    simple = type_name.rpartition(".")[2]
    name = simple[:1].lower() + simple[1:] + str(index)
    return name.replace("[]", "Array")


@dataclass(slots=True)
class Configuration:
    annotating_deprecated_methods: bool = True
    annotating_overridden_methods: bool = True
    discarding_abstract_interface_method_modifier: bool = True
    discarding_extends_object: bool = True
    discarding_public_interface_method_modifier: bool = True
    discarding_unnecessary_package_names: bool = True
    displaying_attribute_infos: bool = False
    displaying_configuration_parameters: bool = False
    displaying_instructions: bool = False
    importing_types: bool = True
    separating_groups: bool = False
    sorting_groups: bool = False
    sorting_imports: bool = True
    indent: str = "\t"
    local_variable_name_generator: LocalVariableNameGenerator = field(
        default=default_local_variable_name, repr=False, compare=False
    )

    # ------------------------------------------------------------------ #
    #  Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> Configuration:
        """Build from a name -> value mapping, ignoring unknown names."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in options.items() if k in known})

    @classmethod
    def toggle_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.type in ("bool", bool)]

    def toggles(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in self.toggle_names()}

    # ------------------------------------------------------------------ #
    #  Validation
    # ------------------------------------------------------------------ #

    def validate(self) -> list[str]:
        """Check values and return warnings for ineffective combinations.

        Raises:
            ConfigurationError: a toggle is not a bool, the indent is not
                whitespace, or the name generator is not callable.
        """
        for name, value in self.toggles().items():
            if not isinstance(value, bool):
                raise ConfigurationError(f"{name} must be a bool, got {type(value).__name__}")
        if not isinstance(self.indent, str) or not self.indent or self.indent.strip():
            raise ConfigurationError(f"indent must be non-empty whitespace, got {self.indent!r}")
        if not callable(self.local_variable_name_generator):
            raise ConfigurationError("local_variable_name_generator must be callable")

        warnings: list[str] = []
        if self.separating_groups and not self.sorting_groups:
            warnings.append("separating_groups has no effect without sorting_groups")
        if self.importing_types and not self.discarding_unnecessary_package_names:
            warnings.append(
                "importing_types without discarding_unnecessary_package_names "
                "emits imports for names that stay fully qualified"
            )
        return warnings
