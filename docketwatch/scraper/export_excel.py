"""Excel export of the cumulative datasets."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from . import config
from .merge_store import load_dataset
from .utils import log_line, utc_now

# Sheet name -> path relative to the output directory.
CUMULATIVE_DATASETS = {
    "Calendar_Recent": Path("calendar") / "all-cases-recent.csv",
    "Calendar_Historical": Path("calendar") / "all-cases-historical.csv",
    "Cases": Path("cases") / "cases.csv",
    "Actions": Path("cases") / "actions.csv",
}


def export_datasets_to_excel(
    output_dir: Optional[Path] = None,
    dest_path: Optional[Path] = None,
) -> Path:
    """Write every cumulative dataset found under ``output_dir`` to one workbook."""

    output_dir = Path(output_dir or config.OUTPUT_DIR)
    frames: dict[str, pd.DataFrame] = {}
    for sheet, relative in CUMULATIVE_DATASETS.items():
        path = output_dir / relative
        if not path.exists():
            continue
        dataset = load_dataset(path)
        frames[sheet] = pd.DataFrame(list(dataset.records), columns=list(dataset.fieldnames))

    if not frames:
        raise FileNotFoundError(f"No cumulative datasets found under {output_dir}")

    summary = pd.DataFrame(
        [{"dataset": sheet, "rows": len(frame)} for sheet, frame in frames.items()]
    )

    if dest_path is None:
        config.EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
        dest_path = config.EXPORTS_DIR / f"docketwatch_{utc_now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        summary.to_excel(writer, index=False, sheet_name="Summary")
        for sheet, frame in frames.items():
            frame.to_excel(writer, index=False, sheet_name=sheet)

    log_line(f"Exported {len(frames)} datasets to {dest_path}")
    return dest_path


__all__ = ["export_datasets_to_excel", "CUMULATIVE_DATASETS"]
