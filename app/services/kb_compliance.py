from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

GDPR_REASON = (
    "GDPR Compliance: Document contains personal data from EU region "
    "and requires additional review."
)

RECOMMENDED_METADATA_KEYS = ("domain", "region")

STANDARD_DOMAINS = (
    "Engineering",
    "Finance",
    "Human Resources",
    "Marketing",
    "Sales",
    "Operations",
    "Legal",
    "IT",
    "Research",
    "Customer Service",
    "Other",
)

STANDARD_REGIONS = (
    "North America",
    "Europe",
    "Asia Pacific",
    "Latin America",
    "Middle East",
    "Africa",
    "Global",
)

_EU_MARKERS = ("eu", "europe")
_PERSONAL_DATA_KEY_MARKERS = ("data", "pii")
_PERSONAL_DATA_VALUE_MARKERS = ("personal", "sensitive")


@dataclass(frozen=True)
class ComplianceCheck:
    passed: bool
    is_sensitive: bool
    reason: str | None = None


@dataclass
class MetadataReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _pairs(metadata: Iterable | None) -> list[tuple[str, str]]:
    """Normalise metadata entries (dicts or objects with key/value) to tuples."""
    pairs = []
    for item in metadata or []:
        if isinstance(item, Mapping):
            key, value = item.get("key"), item.get("value")
        else:
            key, value = getattr(item, "key", None), getattr(item, "value", None)
        pairs.append((str(key or ""), str(value or "")))
    return pairs


def _contains_any(text: str, markers: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


def is_eu_region(metadata: Iterable | None, region: str | None) -> bool:
    if region and _contains_any(region, _EU_MARKERS):
        return True
    return any(
        key.lower() == "region" and _contains_any(value, _EU_MARKERS)
        for key, value in _pairs(metadata)
    )


def has_personal_data(metadata: Iterable | None) -> bool:
    return any(
        _contains_any(key, _PERSONAL_DATA_KEY_MARKERS)
        and _contains_any(value, _PERSONAL_DATA_VALUE_MARKERS)
        for key, value in _pairs(metadata)
    )


def check_compliance(metadata: Iterable | None, region: str | None) -> ComplianceCheck:
    """GDPR gate: fails only when EU region AND personal data both hold."""
    if is_eu_region(metadata, region) and has_personal_data(metadata):
        return ComplianceCheck(passed=False, is_sensitive=True, reason=GDPR_REASON)
    return ComplianceCheck(passed=True, is_sensitive=False)


def validate_metadata(metadata: Iterable | None) -> MetadataReport:
    report = MetadataReport()
    pairs = _pairs(metadata)
    keys = {key.lower() for key, _ in pairs}

    for required in RECOMMENDED_METADATA_KEYS:
        if required not in keys:
            report.warnings.append(f"Recommended metadata key '{required}' is missing")

    for index, (key, value) in enumerate(pairs, start=1):
        if not key.strip():
            report.errors.append(f"Metadata item {index}: key is required")
        if not value.strip():
            report.errors.append(f"Metadata item {index}: value is required")
        if key.lower() == "domain" and value not in STANDARD_DOMAINS:
            report.warnings.append(f"Domain '{value}' is not in the standard list")
        if key.lower() == "region" and value not in STANDARD_REGIONS:
            report.warnings.append(f"Region '{value}' is not in the standard list")

    return report
