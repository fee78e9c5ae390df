from __future__ import annotations

import re

from agentquery.errors import AgentQueryError, ErrorCode
from agentquery.models.agent import AgentRecord
from agentquery.models.stats import ValidationReport

# Lowercase letters, digits, hyphens and dots (for names like "python-3.12")
_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9.-]*$")
_SHORT_DESCRIPTION = 10


class AgentValidator:
    """Checks agent records for the fields a usable definition needs.

    Capabilities are optional and unrestricted: agents may declare any
    domain-specific capability.
    """

    def validate(self, record: AgentRecord) -> None:
        """Raise ``AgentQueryError`` (INVALID_AGENT) on the first problem found."""
        if not record.name:
            raise AgentQueryError(ErrorCode.INVALID_AGENT, "name is required")
        if not _NAME_PATTERN.match(record.name):
            raise AgentQueryError(
                ErrorCode.INVALID_AGENT, f"name must be lowercase with hyphens: {record.name}"
            )
        if not record.description:
            raise AgentQueryError(ErrorCode.INVALID_AGENT, "description is required")
        if not record.body:
            raise AgentQueryError(ErrorCode.INVALID_AGENT, "agent body is required")

    def is_valid(self, record: AgentRecord) -> bool:
        try:
            self.validate(record)
        except AgentQueryError:
            return False
        return True

    def validate_with_report(self, record: AgentRecord) -> ValidationReport:
        report = ValidationReport()
        present = 0

        if record.name:
            present += 1
            if not _NAME_PATTERN.match(record.name):
                report.errors.append("Invalid name format")
        else:
            report.errors.append("Missing name")

        if record.description:
            present += 1
            if len(record.description) < _SHORT_DESCRIPTION:
                report.warnings.append("Description very short")
        else:
            report.errors.append("Missing description")

        if record.capabilities:
            present += 1

        if record.body:
            present += 1
        else:
            report.errors.append("Missing body")

        report.valid = not report.errors
        report.coverage = present / 4 * 100
        return report
