from io import BytesIO

import pandas as pd
from flask import make_response

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _sheet_name(key):
    # Excel caps sheet names at 31 characters.
    return key.replace("_", " ").title()[:31]


def report_frames(report):
    """Split a report dict into DataFrames: scalars on a Summary sheet, each list or mapping on its own."""
    summary = []
    frames = {}
    for key, value in report.items():
        if isinstance(value, list):
            frames[_sheet_name(key)] = pd.DataFrame(value)
        elif isinstance(value, dict):
            frames[_sheet_name(key)] = pd.DataFrame([{"Name": k, "Value": v} for k, v in value.items()])
        else:
            summary.append({"Metric": key.replace("_", " ").title(), "Value": value})
    return {"Summary": pd.DataFrame(summary), **frames}


def report_workbook(report):
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for name, df in report_frames(report).items():
            df.to_excel(writer, index=False, sheet_name=name)
    output.seek(0)
    return output.read()


def excel_response(report, filename):
    response = make_response(report_workbook(report))
    response.headers["Content-Disposition"] = f"attachment; filename={filename}.xlsx"
    response.headers["Content-Type"] = XLSX_MIMETYPE
    return response
