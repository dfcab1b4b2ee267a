# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Structural checks on a parsed descriptor.

Every check reads the descriptor only. Issues that an engine would reject at
deploy time are errors; suspicious but deployable constructs are warnings.
"""
import logging
import posixpath
from typing import Dict, Optional, Tuple

from ..MODELS.compose_descriptor import ComposeDescriptor
from ..MODELS.service_definition import ServiceDefinition
from ..MODELS.validation_report import Severity, ValidationIssue, ValidationReport
from ..REGISTRY.image_reference import ImageReference
from ..RUNNERS.dependency_resolver import DependencyResolver

logger = logging.getLogger(__name__)


class DescriptorValidator:
    """
    Verifies the invariants of a descriptor and collects every violation into a report.
    """

    def __init__(self, project_dir: Optional[str] = None, check_env_files: bool = False):
        """
        :param project_dir: Directory env file paths are relative to.
        :param check_env_files: Also warn about env files missing on disk.
        """
        self.project_dir = project_dir or "."
        self.check_env_files = check_env_files
        self.resolver = DependencyResolver()

    def validate(self, descriptor: ComposeDescriptor, source: Optional[str] = None) -> ValidationReport:
        """
        Runs all checks.

        :param descriptor: The parsed descriptor.
        :param source: Name of the file the descriptor came from, for messages.
        :return: The report; it is never raised from here.
        """
        report = ValidationReport(source=source)

        self._check_format(descriptor, report)
        for svc in descriptor.services.values():
            self._check_image(svc, report)
            self._check_dependencies(descriptor, svc, report)
            self._check_mounts(descriptor, svc, report)
            if self.check_env_files:
                self._check_env_files(svc, report)
        self._check_cycles(descriptor, report)
        self._check_host_ports(descriptor, report)
        self._check_unused_volumes(descriptor, report)

        logger.info("Validated %s: %d error(s), %d warning(s)",
                    source or "descriptor", len(report.errors), len(report.warnings))
        return report

    def _check_format(self, descriptor: ComposeDescriptor, report: ValidationReport):
        if descriptor.version is None:
            report.add(ValidationIssue(
                code="missing-version", severity=Severity.WARNING,
                message="no format-version marker"))
        for key in descriptor.unsupported_keys:
            report.add(ValidationIssue(
                code="unsupported-key", severity=Severity.WARNING,
                message=f"top-level key '{key}' is not recognised and will be ignored"))
        for name, svc in descriptor.services.items():
            for key in svc.unsupported_keys:
                report.add(ValidationIssue(
                    code="unsupported-key", severity=Severity.WARNING, service=name,
                    message=f"key '{key}' is not recognised and will be ignored"))

    def _check_image(self, svc: ServiceDefinition, report: ValidationReport):
        if not svc.image:
            report.add(ValidationIssue(code="missing-image", service=svc.name, message="no image reference"))
            return
        try:
            ImageReference.parse(svc.image)
        except ValueError as e:
            report.add(ValidationIssue(code="invalid-image", service=svc.name, message=str(e)))

    def _check_dependencies(self, descriptor: ComposeDescriptor, svc: ServiceDefinition, report: ValidationReport):
        for dep in svc.depends_on:
            if dep == svc.name:
                report.add(ValidationIssue(
                    code="self-dependency", service=svc.name, message="service depends on itself"))
            elif dep not in descriptor.services:
                report.add(ValidationIssue(
                    code="undeclared-dependency", service=svc.name,
                    message=f"depends on '{dep}', which is not a declared service"))

    def _check_cycles(self, descriptor: ComposeDescriptor, report: ValidationReport):
        # self-loops are reported as self-dependency
        cycle = self.resolver.find_cycle(descriptor, ignore_self=True)
        if cycle is None:
            return
        report.add(ValidationIssue(
            code="dependency-cycle", service=cycle[0],
            message=f"circular dependency: {' -> '.join(cycle)}"))

    def _check_mounts(self, descriptor: ComposeDescriptor, svc: ServiceDefinition, report: ValidationReport):
        targets: Dict[str, str] = {}
        for mount in svc.volumes:
            if mount.is_named_volume and mount.source not in descriptor.volumes:
                report.add(ValidationIssue(
                    code="undeclared-volume", service=svc.name, volume=mount.source,
                    message=f"mounts volume '{mount.source}', which is not declared under top-level volumes"))
            if not posixpath.isabs(mount.target):
                report.add(ValidationIssue(
                    code="relative-target", service=svc.name, volume=mount.source,
                    message=f"mount target '{mount.target}' is not an absolute path"))
            target = posixpath.normpath(mount.target)
            if target in targets:
                report.add(ValidationIssue(
                    code="duplicate-target", service=svc.name, volume=mount.source,
                    message=f"'{target}' is already mounted from '{targets[target]}'"))
            else:
                targets[target] = mount.source or "<anonymous>"

    def _check_env_files(self, svc: ServiceDefinition, report: ValidationReport):
        for ref in svc.env_files:
            if not ref.exists(self.project_dir):
                report.add(ValidationIssue(
                    code="missing-env-file", severity=Severity.WARNING, service=svc.name,
                    message=f"env file '{ref.path}' not found at {ref.resolve(self.project_dir)}"))

    def _check_host_ports(self, descriptor: ComposeDescriptor, report: ValidationReport):
        published: Dict[Tuple[str, int, str], str] = {}
        for name, svc in descriptor.services.items():
            for port in svc.ports:
                if port.host_port is None:
                    continue
                key = (port.host_ip or "0.0.0.0", port.host_port, port.protocol.value)
                owner = published.get(key)
                if owner is not None and owner != name:
                    report.add(ValidationIssue(
                        code="host-port-conflict", severity=Severity.WARNING, service=name,
                        message=f"host port {port.host_port}/{port.protocol.value} is also published by '{owner}'"))
                else:
                    published[key] = name

    def _check_unused_volumes(self, descriptor: ComposeDescriptor, report: ValidationReport):
        for name, volume in descriptor.volumes.items():
            if not volume.external and not descriptor.mounts_of(name):
                report.add(ValidationIssue(
                    code="unused-volume", severity=Severity.WARNING, volume=name,
                    message="declared but not mounted by any service"))
