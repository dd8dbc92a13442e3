import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Union

import pandas as pd

from reconciliation.models.device_record import DeviceRecord
from reconciliation.models.snapshot import Snapshot

logger = logging.getLogger(__name__)

CORE_COLUMNS = [
    "source",
    "name",
    "secondary_id",
    "in_directory",
    "in_identity_service",
    "in_device_management",
]


def records_to_dataframe(records: Iterable[DeviceRecord]) -> pd.DataFrame:
    """One row per record with core fields and flags first, then every attribute."""
    rows = [record.to_dict() for record in records]
    if not rows:
        return pd.DataFrame(columns=CORE_COLUMNS)
    df = pd.DataFrame(rows)
    extra_columns = [column for column in df.columns if column not in CORE_COLUMNS]
    return df[CORE_COLUMNS + extra_columns]


def export_records(records: Iterable[DeviceRecord], path: Union[str, Path]) -> Path:
    """Write records to a CSV file and return its path."""
    path = Path(path)
    df = records_to_dataframe(records)
    df.to_csv(path, index=False)
    logger.info(f"💾 Wrote {len(df)} records to {path}")
    return path


def export_snapshot(snapshot: Snapshot, output_dir: Union[str, Path]) -> Dict[str, Path]:
    """
    Export every collection of a snapshot and its broken subset to CSV.

    File names carry the capture time so exports of different refreshes never
    overwrite each other.

    Returns:
        Dict[str, Path]: Written file per collection name.
    """
    os.makedirs(output_dir, exist_ok=True)
    stamp = snapshot.captured_at.strftime("%Y%m%d_%H%M%S")
    collections = {
        "directory": snapshot.directory,
        "identity_service": snapshot.identity_service,
        "device_management": snapshot.device_management,
        "broken": snapshot.broken,
    }
    return {
        name: export_records(records, Path(output_dir) / f"{name}_devices_{stamp}.csv")
        for name, records in collections.items()
    }
