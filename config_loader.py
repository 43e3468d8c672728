"""Configuration loader with YAML support and environment variable substitution."""

import copy
import logging
import os
import re
from typing import Any, Dict, List

import yaml

from content.tags import parse_tag_directive, split_tag_directives
from models import FILE_FORMATS, ExecutionParams, ItemSelector, PublishMode

logger = logging.getLogger('content_exim.config_loader')


class ConfigurationError(ValueError):
    """Raised when configuration values are invalid."""
    pass


SECTIONS = ('execution', 'documents', 'binaries', 'gallery', 'assets', 'async', 'logging')


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigurationError("Configuration file must contain a dictionary")

        return cls._substitute_env_vars_recursive(config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigurationError: If validation fails
        """
        for section in SECTIONS:
            value = config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ConfigurationError(f"Configuration section '{section}' must be a mapping")

        batch_size = get_nested(config, 'execution.batch_size', 200)
        if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1:
            raise ConfigurationError("execution.batch_size must be a positive integer")

        throttle = get_nested(config, 'execution.throttle', 10)
        if not isinstance(throttle, int) or isinstance(throttle, bool) or throttle < 0:
            raise ConfigurationError("execution.throttle must be a non-negative integer (milliseconds)")

        threshold = get_nested(config, 'execution.data_url_size_threshold', 256 * 1024)
        if not isinstance(threshold, int) or isinstance(threshold, bool) or threshold < 0:
            raise ConfigurationError("execution.data_url_size_threshold must be a non-negative integer")

        try:
            PublishMode.parse(get_nested(config, 'execution.publish_on_import', 'none'))
        except ValueError as e:
            raise ConfigurationError(f"execution.{e}")

        file_format = get_nested(config, 'execution.file_format', 'json')
        if file_format not in FILE_FORMATS:
            raise ConfigurationError(f"execution.file_format must be one of: {list(FILE_FORMATS)}")

        for category in ('documents', 'binaries'):
            for key in ('queries', 'paths', 'includes', 'excludes'):
                value = get_nested(config, f'{category}.{key}')
                if value is not None and not isinstance(value, (str, list)):
                    raise ConfigurationError(f"{category}.{key} must be a string or a list")
            for path in _as_list(get_nested(config, f'{category}.paths')):
                if not path.startswith('/'):
                    raise ConfigurationError(f"{category}.paths entries must be absolute: {path}")

        max_workers = get_nested(config, 'async.max_workers', 2)
        if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers < 1:
            raise ConfigurationError("async.max_workers must be a positive integer")

        ttl = get_nested(config, 'async.file_ttl_hours', 24)
        if not isinstance(ttl, (int, float)) or isinstance(ttl, bool) or ttl <= 0:
            raise ConfigurationError("async.file_ttl_hours must be a positive number")

        level = get_nested(config, 'logging.level')
        if level is not None and str(level).upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigurationError("logging.level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('execution', 'logging'):
            if merged.get(section) is None:
                merged[section] = {}

        if getattr(args, 'batch_size', None) is not None:
            merged['execution']['batch_size'] = args.batch_size

        if getattr(args, 'throttle', None) is not None:
            merged['execution']['throttle'] = args.throttle

        if getattr(args, 'publish', None):
            merged['execution']['publish_on_import'] = args.publish

        if getattr(args, 'format', None):
            merged['execution']['file_format'] = args.format

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        if getattr(args, 'verbose', 0):
            merged['logging']['level'] = 'DEBUG' if args.verbose >= 2 else 'INFO'

        return merged

    @classmethod
    def build_execution_params(cls, config: Dict[str, Any]) -> ExecutionParams:
        """
        Build the execution parameters of a run from a validated configuration.

        Args:
            config: Configuration dictionary

        Returns:
            ExecutionParams

        Raises:
            ConfigurationError: If a value is rejected by ExecutionParams
        """
        data: Dict[str, Any] = {}

        for key in ('batch_size', 'throttle', 'publish_on_import', 'data_url_size_threshold',
                    'docbase_prop_names', 'file_format'):
            value = get_nested(config, f'execution.{key}')
            if value is not None:
                data[key] = value

        for category, tags_key in (('documents', 'document_tags'), ('binaries', 'binary_tags')):
            section = config.get(category) or {}
            data[category] = ItemSelector.from_dict(section).to_dict()
            data[tags_key] = cls._tag_directives(section.get('tags'))

        for prefix in ('gallery', 'asset'):
            section = config.get('gallery' if prefix == 'gallery' else 'assets') or {}
            for key in ('primary_type', 'folder_types', 'gallery_types'):
                value = section.get(f'folder_{key}')
                if value is not None:
                    data[f'{prefix}_folder_{key}'] = value

        try:
            return ExecutionParams.from_dict(data)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    @staticmethod
    def _tag_directives(value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            directives = split_tag_directives(value)
        else:
            directives = [str(item).strip() for item in value if str(item).strip()]
        # Malformed directives stay; apply_tags skips them per item
        for directive in directives:
            if parse_tag_directive(directive) is None:
                logger.warning(f"Invalid content tag info: {directive}")
        return directives

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "execution.batch_size")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value
