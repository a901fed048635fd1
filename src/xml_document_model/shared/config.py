"""Configuration classes for the XML document model.

This module provides configuration objects for parsing, serialization and
querying, enabling fine-tuned control over how documents are loaded, exported
and searched.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

_COMPONENTS = ("parsing", "output", "query", "global_")


@dataclass
class ParsingConfig:
    """Configuration for loading XML text into a tree."""

    remove_blank_text: bool = False
    remove_comments: bool = False
    resolve_entities: bool = False
    no_network: bool = True
    huge_tree: bool = False

    def __post_init__(self) -> None:
        """Validate parsing configuration."""
        if self.huge_tree and self.resolve_entities:
            raise ValueError("huge_tree cannot be combined with resolve_entities")

    def parser_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``lxml.etree.XMLParser``."""
        return {
            "remove_blank_text": self.remove_blank_text,
            "remove_comments": self.remove_comments,
            "resolve_entities": self.resolve_entities,
            "no_network": self.no_network,
            "huge_tree": self.huge_tree,
        }


@dataclass
class OutputConfig:
    """Configuration for flattening a tree to text."""

    pretty_print: bool = False
    with_tail: bool = True


@dataclass
class QueryConfig:
    """Configuration for XPath evaluation."""

    smart_strings: bool = True
    default_prefix: Optional[str] = None  # XPath prefix for the default namespace
    max_path_length: int = 4096

    def __post_init__(self) -> None:
        """Validate query configuration."""
        if self.default_prefix is not None and not self.default_prefix:
            raise ValueError("default_prefix must be a non-empty string or None")
        if self.max_path_length <= 0:
            raise ValueError("max_path_length must be > 0")


@dataclass
class GlobalConfig:
    """Global configuration settings that apply across all components."""

    logging_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    enable_correlation_tracking: bool = True

    def __post_init__(self) -> None:
        """Validate global configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.logging_level not in valid_levels:
            raise ValueError(f"logging_level must be one of {valid_levels}")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class DocumentConfig:
    """Configuration for all document model components.

    Immutable; derive variants with :meth:`override`.
    """

    parsing: ParsingConfig = field(default_factory=ParsingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    global_: GlobalConfig = field(default_factory=GlobalConfig)

    name: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the complete document configuration."""
        try:
            self.parsing.__post_init__()
            self.query.__post_init__()
            self.global_.__post_init__()
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

    def override(self, **kwargs: Any) -> "DocumentConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Keyword arguments for configuration fields to override

        Returns:
            New DocumentConfig instance with overrides applied

        Example:
            >>> config = DocumentConfig()
            >>> new_config = config.override(
            ...     output__pretty_print=True,
            ...     query__default_prefix="d"
            ... )
        """
        nested_overrides: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.rsplit("__", 1)
                if component not in _COMPONENTS:
                    raise ConfigValidationError(
                        f"Unknown configuration component: {component}",
                        field_name=key,
                        suggestions=[f"Valid components: {', '.join(_COMPONENTS)}"],
                    )
                nested_overrides.setdefault(component, {})[field_name] = value
            else:
                nested_overrides[key] = value

        new_fields: Dict[str, Any] = {}
        try:
            for field_name in _COMPONENTS:
                current_config = getattr(self, field_name)
                if field_name in nested_overrides:
                    new_fields[field_name] = replace(
                        current_config, **nested_overrides[field_name]
                    )
                else:
                    new_fields[field_name] = current_config
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(str(e)) from e

        for key, value in nested_overrides.items():
            if key not in _COMPONENTS:
                new_fields[key] = value

        return replace(self, **new_fields)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        def _dataclass_to_dict(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return {
                    name: _dataclass_to_dict(getattr(obj, name))
                    for name in obj.__dataclass_fields__
                }
            return obj

        result = _dataclass_to_dict(self)
        if not isinstance(result, dict):
            raise ConfigValidationError("Configuration serialization failed")
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentConfig":
        """Create configuration from dictionary.

        Unknown keys are rejected so that typos do not silently fall back to
        defaults.
        """
        component_types = {
            "parsing": ParsingConfig,
            "output": OutputConfig,
            "query": QueryConfig,
            "global_": GlobalConfig,
        }
        field_values: Dict[str, Any] = {}
        for key, value in data.items():
            if key in component_types:
                try:
                    field_values[key] = component_types[key](**value)
                except (TypeError, ValueError) as e:
                    raise ConfigValidationError(str(e), field_name=key) from e
            elif key == "name":
                field_values[key] = value
            else:
                raise ConfigValidationError(
                    f"Unknown configuration key: {key}",
                    field_name=key,
                    suggestions=[f"Valid keys: {', '.join((*component_types, 'name'))}"],
                )
        return cls(**field_values)

    @classmethod
    def from_json(cls, json_str: str) -> "DocumentConfig":
        """Create configuration from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def readable(cls) -> "DocumentConfig":
        """Preset that discards blank text on load and indents on export."""
        return cls(
            parsing=ParsingConfig(remove_blank_text=True),
            output=OutputConfig(pretty_print=True),
            name="readable",
        )

    @classmethod
    def strict(cls) -> "DocumentConfig":
        """Preset that refuses entity expansion and oversized trees."""
        return cls(
            parsing=ParsingConfig(
                resolve_entities=False,
                no_network=True,
                huge_tree=False,
            ),
            query=QueryConfig(smart_strings=False, max_path_length=1024),
            global_=GlobalConfig(logging_level="WARNING"),
            name="strict",
        )
