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
Exceptions raised while loading and checking a descriptor.
"""
from typing import List, Optional


class StackcheckError(Exception):
    """Base class for all errors raised by stackcheck."""


class DescriptorSyntaxError(StackcheckError):
    """
    The descriptor is not well-formed: bad YAML, a duplicate key, or a value of the wrong shape.
    """

    def __init__(self, message: str, service: Optional[str] = None, key: Optional[str] = None):
        self.service = service
        self.key = key
        location = []
        if service:
            location.append(f"services.{service}")
        if key:
            location.append(key)
        if location:
            message = f"{'.'.join(location)}: {message}"
        super().__init__(message)


class DescriptorValidationError(StackcheckError):
    """
    The descriptor parsed but breaks one or more structural invariants.
    The full report is available as ``report``.
    """

    def __init__(self, report):
        self.report = report
        errors = report.errors
        lines = [f"{len(errors)} validation error(s)" + (f" in {report.source}" if report.source else "")]
        lines.extend(f"  {issue}" for issue in errors)
        super().__init__("\n".join(lines))


class CircularDependencyError(StackcheckError):
    """Raised when ``depends_on`` links form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Circular dependency detected: {' -> '.join(cycle)}")


class InterpolationError(StackcheckError):
    """Raised in strict mode when a referenced variable is not set."""

    def __init__(self, variable: str, message: Optional[str] = None):
        self.variable = variable
        super().__init__(message or f"Variable {variable} is not set")


class DuplicateNameError(DescriptorSyntaxError):
    """
    A service or volume name is declared twice. ``kind`` is ``"service"`` or ``"volume"``.
    """

    def __init__(self, kind: str, name: str, line: Optional[int] = None):
        self.kind = kind
        self.name = name
        self.line = line
        where = f" (line {line})" if line else ""
        super().__init__(f"{kind} '{name}' is declared more than once{where}", key=f"{kind}s")

    @property
    def code(self) -> str:
        return f"duplicate-{self.kind}"
