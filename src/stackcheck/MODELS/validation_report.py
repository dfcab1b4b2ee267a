"""
Models for the outcome of validating a descriptor.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from enum import Enum
from ..errors import DescriptorValidationError

class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"

class ValidationIssue(BaseModel):
    """
    A single finding. ``service`` and ``volume`` name the offending entity when there is one.
    """
    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    severity: Severity = Severity.ERROR
    service: Optional[str] = None
    volume: Optional[str] = None

    @property
    def location(self) -> str:
        if self.service and self.volume:
            return f"services.{self.service} -> volumes.{self.volume}"
        if self.service:
            return f"services.{self.service}"
        if self.volume:
            return f"volumes.{self.volume}"
        return "<descriptor>"

    def __str__(self) -> str:
        return f"{self.severity.value}: {self.location}: {self.message} [{self.code}]"

class ValidationReport(BaseModel):
    """
    All issues found in one descriptor, in the order the checks ran.
    """
    source: Optional[str] = None
    issues: List[ValidationIssue] = []

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, issue: ValidationIssue):
        self.issues.append(issue)

    def codes(self) -> List[str]:
        return [i.code for i in self.issues]

    def raise_for_errors(self):
        """
        :raises DescriptorValidationError: If the report holds any error.
        """
        if self.errors:
            raise DescriptorValidationError(self)
