# -*- coding: utf-8 -*-
"""Show how a biometric export parses: counts, dates and per-employee scans.

Usage:
    python scripts/inspect_scan_file.py path/to/export.txt [YYYY-MM-DD]
"""
import os
import sys
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import pandas as pd

from app.services.file_parser import get_statistics, group_by_employee, parse_file, validate_file_dates

if len(sys.argv) < 2:
    print(__doc__)
    sys.exit(1)

result = parse_file(sys.argv[1])
print("Records:", len(result.records), "skipped lines:", result.skipped_lines)
stats = get_statistics(result.records)
print("Employees:", stats["unique_employees"], "range:", stats["date_range"]["start"], "->", stats["date_range"]["end"])

if len(sys.argv) > 2:
    check = validate_file_dates(result.records, date.fromisoformat(sys.argv[2]))
    print("Dates found:", [d.isoformat() for d in check["dates_found"]])
    for warning in check["warnings"]:
        print("WARNING:", warning)
print("---")

groups = group_by_employee(result.records)
summary = pd.DataFrame(
    [
        {
            "name": name,
            "scans": len(records),
            "first": records[0].datetime,
            "last": records[-1].datetime,
        }
        for name, records in groups.items()
    ]
)
if not summary.empty:
    print(summary.sort_values("name").to_string(index=False))
