"""
exporter.py - Export Layer for the Support Rotation

Outputs:
  - CSV: flat (date, slot, engineer) rows from the rotation history
  - Excel (.xlsx): one row per rotation, one column per slot
  - Fairness report (.txt): per-engineer assignment counts, CV, last served
  - Chart (.png): assignment counts per engineer (optional)

Usage:
  from support_rotation.exporter import export_history_csv, export_fairness_report
"""

import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

History = List[Dict[str, Any]]   # [{"date": iso, "engineers": [...]}]


# ---------------------------------------------------------------------------
# CSV Export
# ---------------------------------------------------------------------------

def export_history_csv(history: History, output_path: Path) -> None:
    """
    Export rotation history to flat CSV: date, slot, engineer.

    Args:
        history:     RotationState.history
        output_path: .csv file path
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=["date", "slot", "engineer"])
        writer.writeheader()
        for entry in history:
            for slot, engineer in enumerate(entry.get("engineers", []), start=1):
                writer.writerow({"date": entry.get("date"), "slot": slot, "engineer": engineer})

    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Excel Export
# ---------------------------------------------------------------------------

def export_history_excel(
    history: History,
    output_path: Path,
    names: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export rotation history to a formatted Excel sheet.

    Rows = rotations (oldest first), columns = Engineer 1..N.

    Args:
        history:     RotationState.history
        output_path: .xlsx file path
        names:       Optional engineer ID → display name map
    """
    import pandas as pd

    output_path.parent.mkdir(parents=True, exist_ok=True)
    name_map = names or {}

    rows = []
    for entry in history:
        row: Dict[str, Any] = {"Date": entry.get("date")}
        for slot, engineer in enumerate(entry.get("engineers", []), start=1):
            row[f"Engineer {slot}"] = name_map.get(engineer, engineer)
        rows.append(row)

    df = pd.DataFrame(rows)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="History", index=False)
        if not df.empty:
            _format_excel_sheet(writer, "History")

    logger.info(f"Excel exported → {output_path}")


def _format_excel_sheet(writer: Any, sheet_name: str) -> None:
    """Bold coloured header row and fitted column widths."""
    from openpyxl.styles import Alignment, Font, PatternFill

    ws = writer.sheets[sheet_name]
    header_fill = PatternFill("solid", fgColor="1F4E79")
    header_font = Font(bold=True, color="FFFFFF")

    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    for col in ws.columns:
        max_len = max((len(str(c.value)) for c in col if c.value), default=8)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, 40)


# ---------------------------------------------------------------------------
# Fairness Report
# ---------------------------------------------------------------------------

def export_fairness_report(
    metrics: Dict[str, Any],
    output_path: Path,
    names: Optional[Dict[str, str]] = None,
    current_engineers: Optional[List[str]] = None,
    skip_list: Optional[List[str]] = None,
) -> str:
    """
    Export the fairness audit report (text format) and return its text.

    Args:
        metrics:           Output of engine.calculate_fairness_metrics()
        output_path:       .txt file path
        names:             Optional engineer ID → display name map
        current_engineers: Shown in the header when given
        skip_list:         Shown in the header when given
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    name_map = names or {}

    counts = metrics.get("counts", {})
    last_served = metrics.get("last_served", {})
    mean_val = metrics.get("mean", 0)
    sorted_ids = sorted(counts.keys(), key=lambda e: (-counts.get(e, 0), e))

    sep = "=" * 70
    lines = [
        sep,
        "  SUPPORT ROTATION FAIRNESS REPORT",
        sep,
        "",
        f"  Rotations recorded:    {metrics.get('rotations', 0)}",
        f"  Mean assignments:      {mean_val:.2f}",
        f"  Std Dev:               {metrics.get('std', 0):.2f}",
        f"  CV:                    {metrics.get('cv', 0):.2f}%",
        f"  Min / Max:             {metrics.get('min', 0)} / {metrics.get('max', 0)}",
        f"  Outside roster:        {metrics.get('other', 0)}",
    ]
    if current_engineers is not None:
        lines.append(f"  Currently on duty:     {', '.join(current_engineers) or '(none)'}")
    if skip_list is not None:
        lines.append(f"  Skip list:             {', '.join(skip_list) or '(empty)'}")

    lines += [
        "",
        "─" * 70,
        f"  {'Engineer':<30} {'Count':>6} {'Δ Mean':>8}  Last served",
        "─" * 70,
    ]
    for engineer in sorted_ids:
        count = counts.get(engineer, 0)
        label = name_map.get(engineer, engineer)
        lines.append(
            f"  {label:<30} {count:>6d} {count - mean_val:>+8.2f}  {last_served.get(engineer) or '-'}"
        )
    lines += ["", sep]

    report_text = "\n".join(lines)
    with open(output_path, "w") as f:
        f.write(report_text)

    logger.info(f"Fairness report exported → {output_path}")
    return report_text


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------

def export_assignment_chart(
    metrics: Dict[str, Any],
    output_path: Path,
    names: Optional[Dict[str, str]] = None,
) -> None:
    """Bar chart of assignment counts per engineer with the mean marked."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    output_path.parent.mkdir(parents=True, exist_ok=True)
    name_map = names or {}
    counts = metrics.get("counts", {})
    mean_val = metrics.get("mean", 0)

    ordered = sorted(counts.keys(), key=lambda e: (-counts[e], e))
    values = [counts[e] for e in ordered]
    x = range(len(ordered))

    fig, ax = plt.subplots(figsize=(max(6, len(ordered) * 0.8), 4))
    ax.bar(x, values, color="#4a90d9", alpha=0.85, width=0.65)
    ax.axhline(mean_val, color="crimson", linewidth=1.8, linestyle="--", label=f"Mean: {mean_val:.1f}")
    ax.set_xticks(list(x))
    ax.set_xticklabels([name_map.get(e, e) for e in ordered], rotation=40, ha="right", fontsize=9)
    ax.set_ylabel("Rotations served")
    ax.set_title(f"Support Assignments by Engineer\nCV = {metrics.get('cv', 0):.1f}%", fontsize=12)
    ax.legend()
    ax.grid(axis="y", alpha=0.3)
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)

    logger.info(f"Chart exported → {output_path}")
