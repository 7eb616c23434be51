"""
Tests for history / fairness exports
"""

import csv
import sys
from pathlib import Path

import pytest

# Add project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from support_rotation.engine import calculate_fairness_metrics
from support_rotation.exporter import (
    export_assignment_chart,
    export_fairness_report,
    export_history_csv,
    export_history_excel,
)

HISTORY = [
    {"date": "2024-03-01T09:00:00+00:00", "engineers": ["A", "B"]},
    {"date": "2024-03-05T09:00:00+00:00", "engineers": ["C", "A"]},
]


@pytest.fixture
def metrics():
    return calculate_fairness_metrics(HISTORY, ["A", "B", "C", "D"])


class TestExports:
    def test_csv_rows(self, tmp_path):
        path = tmp_path / "out" / "history.csv"
        export_history_csv(HISTORY, path)
        with open(path, newline="") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 4
        assert rows[0] == {"date": "2024-03-01T09:00:00+00:00", "slot": "1", "engineer": "A"}
        assert rows[3]["engineer"] == "A"

    def test_excel_uses_names(self, tmp_path):
        import pandas as pd

        path = tmp_path / "history.xlsx"
        export_history_excel(HISTORY, path, names={"A": "Ann"})
        df = pd.read_excel(path, sheet_name="History")
        assert list(df.columns) == ["Date", "Engineer 1", "Engineer 2"]
        assert df.iloc[0]["Engineer 1"] == "Ann"
        assert df.iloc[1]["Engineer 1"] == "C"

    def test_excel_empty_history(self, tmp_path):
        path = tmp_path / "history.xlsx"
        export_history_excel([], path)
        assert path.exists()

    def test_fairness_report(self, tmp_path, metrics):
        path = tmp_path / "report.txt"
        text = export_fairness_report(
            metrics, path, names={"A": "Ann"}, current_engineers=["C", "A"], skip_list=[],
        )
        assert path.read_text() == text
        assert "SUPPORT ROTATION FAIRNESS REPORT" in text
        assert "Currently on duty:     C, A" in text
        assert "Skip list:             (empty)" in text
        lines = text.splitlines()
        ann = next(line for line in lines if line.strip().startswith("Ann"))
        assert "2024-03-05T09:00:00+00:00" in ann
        # Most-served engineer listed first
        assert lines.index(ann) < next(i for i, line in enumerate(lines) if line.strip().startswith("D "))

    def test_chart(self, tmp_path, metrics):
        path = tmp_path / "chart.png"
        export_assignment_chart(metrics, path)
        assert path.exists()
        assert path.stat().st_size > 0
