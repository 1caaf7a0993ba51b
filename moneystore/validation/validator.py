"""
Two-Stage Schema Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - FIELD VALIDATION:
- Required field presence
- Unknown field rejection
- Type checking (bool is never a number)
- Length, pattern, enum, bounds and granularity

STAGE 2 - RECORD VALIDATION:
- Comparisons between fields (start before end, current within target)
- Timestamps that must be in the future when the record is created

Stage 2 only runs when stage 1 passes, so it can rely on types.

IMPORTANT: Validation NEVER silently fixes issues.
It reports every violation; the caller decides what to do.
"""

import re
from decimal import Decimal, DecimalException
from typing import Any, Mapping, Optional

from moneystore.analytics.money import to_decimal
from moneystore.models.records import ValidationIssue, ValidationResult
from moneystore.validation.schemas import CollectionSchema, FieldRule


# Granularity tolerance, in steps. 0.1 + 0.2 is 30.000000000000004 cents.
STEP_TOLERANCE = Decimal("0.000001")

_OPERATORS = {
    "lt": (lambda a, b: a < b),
    "le": (lambda a, b: a <= b),
}


class SchemaValidator:
    """
    Validates records against a CollectionSchema.

    Stateless; one instance can serve every collection.
    """

    def _check_string(
        self,
        name: str,
        value: Any,
        rule: FieldRule,
    ) -> list[ValidationIssue]:
        issues = []

        if not isinstance(value, str):
            return [ValidationIssue(
                field=name,
                rule="type",
                message=f"Expected a string, got {type(value).__name__}",
            )]

        if rule.min_length is not None and len(value) < rule.min_length:
            issues.append(ValidationIssue(
                field=name,
                rule="min_length",
                message=f"Must be at least {rule.min_length} characters",
            ))
        if rule.max_length is not None and len(value) > rule.max_length:
            issues.append(ValidationIssue(
                field=name,
                rule="max_length",
                message=f"Must be at most {rule.max_length} characters",
            ))
        if rule.pattern is not None and re.search(rule.pattern, value) is None:
            issues.append(ValidationIssue(
                field=name,
                rule="pattern",
                message=f"Does not match pattern {rule.pattern}",
            ))
        if rule.enum is not None and value not in rule.enum:
            issues.append(ValidationIssue(
                field=name,
                rule="enum",
                message=f"Must be one of: {', '.join(rule.enum)}",
            ))

        return issues

    def _check_number(
        self,
        name: str,
        value: Any,
        rule: FieldRule,
    ) -> list[ValidationIssue]:
        issues = []

        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            return [ValidationIssue(
                field=name,
                rule="type",
                message=f"Expected a number, got {type(value).__name__}",
            )]
        try:
            number = to_decimal(value)
        except ValueError:
            return [ValidationIssue(
                field=name,
                rule="type",
                message="Must be a finite number",
            )]

        if rule.type == "integer" and number != number.to_integral_value():
            issues.append(ValidationIssue(
                field=name,
                rule="integer",
                message="Must be a whole number",
            ))
        if rule.minimum is not None and number < rule.minimum:
            issues.append(ValidationIssue(
                field=name,
                rule="minimum",
                message=f"Must be at least {rule.minimum}",
            ))
        if rule.maximum is not None and number > rule.maximum:
            issues.append(ValidationIssue(
                field=name,
                rule="maximum",
                message=f"Must be at most {rule.maximum}",
            ))
        # Granularity is only meaningful for an in-range whole value
        if rule.multiple_of is not None and not issues and not self._is_multiple(number, rule.multiple_of):
            issues.append(ValidationIssue(
                field=name,
                rule="multiple_of",
                message=f"Must be a multiple of {rule.multiple_of}",
            ))

        return issues

    @staticmethod
    def _is_multiple(number: Decimal, step: Decimal) -> bool:
        try:
            steps = number / step
            return abs(steps - steps.to_integral_value()) <= STEP_TOLERANCE
        except DecimalException:
            return False

    def _validate_fields(
        self,
        record: Mapping[str, Any],
        schema: CollectionSchema,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Field validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for name in schema.required:
            if record.get(name) is None:
                issues.append(ValidationIssue(
                    field=name,
                    rule="required",
                    message="Field is required",
                ))

        for name, value in record.items():
            rule = schema.properties.get(name)
            if rule is None:
                issues.append(ValidationIssue(
                    field=name,
                    rule="unknown_field",
                    message=f"Field is not part of the {schema.name.value} schema",
                ))
                continue
            if value is None:
                # Optional fields may be explicitly None; required ones were reported above
                continue
            if rule.is_numeric:
                issues.extend(self._check_number(name, value, rule))
            else:
                issues.extend(self._check_string(name, value, rule))

        return not issues, issues

    def _validate_record(
        self,
        record: Mapping[str, Any],
        schema: CollectionSchema,
        now: Optional[int],
        is_insert: bool,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Record validation.

        Rules are skipped when one side of the comparison is absent.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for rule in schema.record_rules:
            left = record.get(rule.left)
            right = record.get(rule.right)
            if left is None or right is None:
                continue
            if not _OPERATORS[rule.op](to_decimal(left), to_decimal(right)):
                issues.append(ValidationIssue(
                    field=rule.left,
                    rule=f"{rule.op}:{rule.right}",
                    message=rule.message,
                ))

        if is_insert and now is not None:
            for name in schema.future_on_insert:
                value = record.get(name)
                if value is not None and value <= now:
                    issues.append(ValidationIssue(
                        field=name,
                        rule="future",
                        message="Must be in the future",
                    ))

        return not issues, issues

    def validate(
        self,
        record: Mapping[str, Any],
        schema: CollectionSchema,
        *,
        now: Optional[int] = None,
        is_insert: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation.

        Args:
            record: The complete record (after any patch merge)
            schema: Descriptor of the record's collection
            now: Current time in epoch ms, for insert-time future checks
            is_insert: Whether the record is being created

        Returns:
            ValidationResult with all issues found
        """
        fields_valid, issues = self._validate_fields(record, schema)

        record_valid = False
        if fields_valid:
            record_valid, record_issues = self._validate_record(record, schema, now, is_insert)
            issues.extend(record_issues)

        return ValidationResult(
            collection=schema.name,
            fields_valid=fields_valid,
            record_valid=record_valid,
            issues=issues,
        )


def validate(
    record: Mapping[str, Any],
    schema: CollectionSchema,
    *,
    now: Optional[int] = None,
    is_insert: bool = True,
) -> ValidationResult:
    """Module-level shortcut for SchemaValidator().validate()."""
    return SchemaValidator().validate(record, schema, now=now, is_insert=is_insert)
