"""
Validating loader: parse a descriptor, check it, and fail on any violation.
"""
import logging
import os
from typing import Dict, Optional, Tuple

from ..MODELS.compose_descriptor import ComposeDescriptor
from ..MODELS.validation_report import ValidationReport
from ..PARSERS.compose_parser import ComposeParser
from ..PARSERS.env_parser import load_project_env
from .descriptor_validator import DescriptorValidator

logger = logging.getLogger(__name__)


def check_descriptor(compose_path: str,
                     project_dir: Optional[str] = None,
                     env_file: Optional[str] = None,
                     context: Optional[Dict[str, str]] = None,
                     check_env_files: bool = False,
                     strict_interpolation: bool = False) -> Tuple[ComposeDescriptor, ValidationReport]:
    """
    Parses and validates a descriptor without raising on validation errors.

    :param compose_path: Path to the descriptor.
    :param project_dir: Directory relative paths resolve against. Defaults to the
        descriptor's directory.
    :param env_file: Project env file used for interpolation instead of ``<project_dir>/.env``.
    :param context: Explicit interpolation context; overrides env_file and os.environ.
    :param check_env_files: Warn about service env files missing on disk.
    :param strict_interpolation: Fail on unset variables.
    :return: The descriptor and its report.
    :raises FileNotFoundError: If the descriptor does not exist.
    :raises DescriptorSyntaxError: If it is not a well-formed descriptor.
    """
    project_dir = project_dir or os.path.dirname(os.path.abspath(compose_path))
    if context is None and env_file is not None:
        context = load_project_env(project_dir, env_file=env_file)
        context.update(os.environ)

    parser = ComposeParser(context=context, project_dir=project_dir,
                           strict_interpolation=strict_interpolation)
    descriptor = parser.parse(compose_path)

    validator = DescriptorValidator(project_dir=project_dir, check_env_files=check_env_files)
    report = validator.validate(descriptor, source=compose_path)
    return descriptor, report


def load_descriptor(compose_path: str, **kwargs) -> ComposeDescriptor:
    """
    Loads a descriptor and verifies its invariants.

    Accepts the keyword arguments of :func:`check_descriptor`. Warnings are logged;
    errors raise.

    :return: The validated descriptor.
    :raises DescriptorValidationError: If any invariant is violated. The message
        names each offending service or volume.
    """
    descriptor, report = check_descriptor(compose_path, **kwargs)
    for issue in report.warnings:
        logger.warning("%s", issue)
    report.raise_for_errors()
    return descriptor
