"""
Report rendering for reconciled device snapshots.

Produces the plain-text summaries, device listings and single-device lookups
printed by the hybrid join audit command.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from reconciliation.models.device_record import DeviceRecord, DeviceSource
from reconciliation.models.lookup_result import LookupResult
from reconciliation.models.snapshot import Snapshot
from reconciliation.predicates import STANDARD_QUERIES

from .export_service import records_to_dataframe

DEFAULT_COLUMNS = [
    "name",
    "secondary_id",
    "in_directory",
    "in_identity_service",
    "in_device_management",
    "trustType",
    "operatingSystem",
    "approximateLastSignInDateTime",
    "lastLogonTimestamp",
    "complianceState",
    "lastSyncDateTime",
]


def _mark(present: bool) -> str:
    return "✅" if present else "❌"


def build_summary(snapshot: Snapshot) -> Dict[str, int]:
    """Counts per collection, per standard query, and of the broken subset."""
    summary = {
        "directory": len(snapshot.directory),
        "identity_service": len(snapshot.identity_service),
        "device_management": len(snapshot.device_management),
        "broken": len(snapshot.broken),
    }
    for name, query in STANDARD_QUERIES.items():
        records = snapshot.collection(query.source)
        summary[name] = sum(1 for record in records if query.predicate(record))
    return summary


def render_summary(snapshot: Snapshot, now: Optional[datetime] = None) -> str:
    summary = build_summary(snapshot)
    age_minutes = int(snapshot.age(now).total_seconds() // 60)
    lines = [
        "=" * 80,
        "HYBRID JOIN AUDIT",
        "=" * 80,
        f"Snapshot v{snapshot.version} captured {snapshot.captured_at:%Y-%m-%d %H:%M:%S} UTC "
        f"({age_minutes} minutes ago)",
        "",
        f"📦 Active Directory computers: {summary['directory']}",
        f"📦 Entra ID devices:           {summary['identity_service']}",
        f"📦 Intune managed devices:     {summary['device_management']}",
        "",
    ]
    for name, query in STANDARD_QUERIES.items():
        lines.append(f"   {summary[name]:>6}  {name:<28} {query.description}")
    lines.extend(
        [
            "",
            f"🩺 Broken Entra ID devices (no Intune enrollment, no working twin): {summary['broken']}",
            "=" * 80,
        ]
    )
    return "\n".join(lines)


def render_devices(
    records: Iterable[DeviceRecord], columns: Optional[List[str]] = None
) -> str:
    """Tabular listing of records, limited to the columns present in the data."""
    df = records_to_dataframe(records)
    if df.empty:
        return "No devices found."
    wanted = columns or DEFAULT_COLUMNS
    df = df[[column for column in wanted if column in df.columns]]
    return f"{df.to_string(index=False)}\n\n{len(df)} devices"


def _describe(record: DeviceRecord) -> str:
    details = ", ".join(
        f"{key}={value}" for key, value in record.attributes.items() if value not in (None, "")
    )
    identifier = f" [{record.secondary_id}]" if record.secondary_id else ""
    return f"      - {record.name}{identifier}: {details}" if details else f"      - {record.name}{identifier}"


def render_lookup(result: LookupResult) -> str:
    sections = [
        (DeviceSource.DIRECTORY, result.directory_matches),
        (DeviceSource.IDENTITY_SERVICE, result.identity_matches),
        (DeviceSource.DEVICE_MANAGEMENT, result.device_management_matches),
    ]
    lines = [f"🔍 {result.name}"]
    for source, matches in sections:
        lines.append(f"   {_mark(bool(matches))} {source.label} ({len(matches)})")
        lines.extend(_describe(record) for record in matches)
    return "\n".join(lines)
