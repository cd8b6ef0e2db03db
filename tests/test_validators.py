#!/usr/bin/env python3
"""Tests for configuration validators."""

import pytest

from mirrorfs.validators import (
    BasePathValidator,
    BooleanValidator,
    FsTypeValidator,
    IntegerValidator,
    LogLevelValidator,
    ScopesValidator,
    StringValidator,
    ValidationError,
    validate_config_value,
)


def test_boolean_validator():
    """Test boolean parsing of env strings."""
    validator = BooleanValidator()
    assert validator.validate('true') is True
    assert validator.validate(' Yes ') is True
    assert validator.validate('0') is False
    assert validator.validate('disabled') is False
    assert validator.validate(False) is False

    with pytest.raises(ValidationError):
        validator.validate('maybe')


def test_integer_validator_bounds():
    """Test integer parsing and bounds."""
    validator = IntegerValidator(min_value=1, max_value=10)
    assert validator.validate('5') == 5

    with pytest.raises(ValidationError):
        validator.validate('0')
    with pytest.raises(ValidationError):
        validator.validate(11)
    with pytest.raises(ValidationError):
        validator.validate('ten')


def test_string_validator():
    """Test strings are stripped and emptiness is enforced when asked."""
    assert StringValidator().validate('  abc ') == 'abc'
    assert StringValidator().validate(None) == ''

    with pytest.raises(ValidationError):
        StringValidator(allow_empty=False).validate('   ')


def test_log_level_validator():
    """Test log levels are upper-cased and checked."""
    assert LogLevelValidator().validate('debug') == 'DEBUG'

    with pytest.raises(ValidationError):
        LogLevelValidator().validate('verbose')


def test_scopes_validator():
    """Test scopes from strings and lists."""
    validator = ScopesValidator()
    assert validator.validate('a, b c') == ['a', 'b', 'c']
    assert validator.validate(['a', ' b ']) == ['a', 'b']

    with pytest.raises(ValidationError):
        validator.validate('')


def test_base_path_validator():
    """Test base paths are canonicalized with a leading slash."""
    validator = BasePathValidator()
    assert validator.validate('DeepRemember/') == '/DeepRemember'
    assert validator.validate('\\a\\b') == '/a/b'
    assert validator.validate('/') == '/'

    with pytest.raises(ValidationError):
        validator.validate('/a/../b')


def test_fs_type_validator():
    """Test backend type names."""
    assert FsTypeValidator().validate('GDrive') == 'gdrive'

    with pytest.raises(ValidationError):
        FsTypeValidator().validate('s3')


def test_validate_config_value_unknown_key_passes_through():
    """Test unknown keys are returned unchanged."""
    assert validate_config_value('unknown', 42) == 42
    assert validate_config_value('max_workers', '8') == 8
