"""Configuration validators for mirrorfs."""

import logging
import re
from collections.abc import Iterable
from typing import Any, List

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


class ConfigValidator:
    """Base class for configuration validators."""

    def validate(self, value: Any) -> Any:
        """Validate and normalize a configuration value.

        Args:
            value: Raw configuration value

        Returns:
            Validated and normalized value

        Raises:
            ValidationError: If validation fails
        """
        raise NotImplementedError


class LogLevelValidator(ConfigValidator):
    """Validates log level."""

    VALID_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}

    def validate(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"Log level must be a string, got: {type(value)}")

        level = value.upper()

        if level not in self.VALID_LEVELS:
            raise ValidationError(
                f"Invalid log level: {value}. Must be one of: {', '.join(sorted(self.VALID_LEVELS))}"
            )

        return level


class BooleanValidator(ConfigValidator):
    """Validates boolean values."""

    TRUE_VALUES = {'true', '1', 'yes', 'on', 'enabled'}
    FALSE_VALUES = {'false', '0', 'no', 'off', 'disabled'}

    def validate(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value

        if isinstance(value, str):
            normalized = value.lower().strip()

            if normalized in self.TRUE_VALUES:
                return True

            if normalized in self.FALSE_VALUES:
                return False

            raise ValidationError(
                f"Invalid boolean value: {value}. Expected: true/false, yes/no, 1/0, on/off, enabled/disabled"
            )

        if isinstance(value, int):
            return bool(value)

        raise ValidationError(f"Cannot convert to boolean: {value}")


class IntegerValidator(ConfigValidator):
    """Validates integer values with optional min/max bounds."""

    def __init__(self, min_value: int = None, max_value: int = None):
        self.min_value = min_value
        self.max_value = max_value

    def validate(self, value: Any) -> int:
        try:
            int_value = int(value)
        except (ValueError, TypeError):
            raise ValidationError(f"Must be an integer, got: {value}")

        if self.min_value is not None and int_value < self.min_value:
            raise ValidationError(
                f"Must be at least {self.min_value}, got: {int_value}"
            )

        if self.max_value is not None and int_value > self.max_value:
            raise ValidationError(
                f"Must be at most {self.max_value}, got: {int_value}"
            )

        return int_value


class StringValidator(ConfigValidator):
    """Validates string values, stripping surrounding whitespace."""

    def __init__(self, allow_empty: bool = True):
        self.allow_empty = allow_empty

    def validate(self, value: Any) -> str:
        if value is None:
            value = ''
        if not isinstance(value, str):
            raise ValidationError(f"Must be a string, got: {type(value)}")

        value = value.strip()
        if not self.allow_empty and not value:
            raise ValidationError("Cannot be empty")

        return value


class ScopesValidator(ConfigValidator):
    """Validates OAuth scopes given as a list or a comma/space separated string."""

    def validate(self, value: Any) -> List[str]:
        if isinstance(value, str):
            scopes = [s for s in re.split(r'[\s,]+', value) if s]
        elif isinstance(value, Iterable):
            scopes = [str(s).strip() for s in value if str(s).strip()]
        else:
            raise ValidationError(f"Scopes must be a list or string, got: {type(value)}")

        if not scopes:
            raise ValidationError("At least one OAuth scope is required")

        return scopes


class BasePathValidator(ConfigValidator):
    """Validates the Drive base path ("/DeepRemember", "/" for the root folder)."""

    def validate(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"Base path must be a string, got: {type(value)}")

        parts = [p for p in value.replace('\\', '/').split('/') if p and p != '.']
        if '..' in parts:
            raise ValidationError(f"Base path cannot contain '..': {value}")

        return '/' + '/'.join(parts)


class FsTypeValidator(ConfigValidator):
    """Validates file system backend type names."""

    VALID_TYPES = {'node', 'fs', 'filesystem', 'google', 'googledrive', 'gdrive'}

    def validate(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"File system type must be a string, got: {type(value)}")

        fs_type = value.strip().lower()
        if fs_type not in self.VALID_TYPES:
            raise ValidationError(
                f"Unsupported file system type: {value}. Must be one of: {', '.join(sorted(self.VALID_TYPES))}"
            )

        return fs_type


# Registry of validators for known config keys
VALIDATORS = {
    'client_id': StringValidator(),
    'client_secret': StringValidator(),
    'redirect_uri': StringValidator(allow_empty=False),
    'access_token': StringValidator(),
    'refresh_token': StringValidator(),
    'root_container_id': StringValidator(allow_empty=False),
    'base_path': BasePathValidator(),
    'scopes': ScopesValidator(),
    'fallback_to_local': BooleanValidator(),
    'local_fallback_path': StringValidator(allow_empty=False),
    'fs_type': FsTypeValidator(),
    'fs_root_dir': StringValidator(),
    'request_timeout': IntegerValidator(min_value=1, max_value=3600),
    'max_workers': IntegerValidator(min_value=1, max_value=64),
    'log_level': LogLevelValidator(),
}


def validate_config_value(key: str, value: Any) -> Any:
    """Validate a configuration value using registered validators.

    Args:
        key: Configuration key
        value: Value to validate

    Returns:
        Validated and normalized value

    Raises:
        ValidationError: If validation fails
    """
    if key in VALIDATORS:
        return VALIDATORS[key].validate(value)

    # Unknown keys pass through unchanged
    return value
