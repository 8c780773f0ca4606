"""Live-class attendance export."""
import io
import re
from datetime import date

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse
import pandas as pd

from liveclass.api.deps import StaffOnly, Store
from liveclass.services.attendance import attendance_frame

router = APIRouter()

_FILENAME_RE = re.compile(r"[^A-Za-z0-9]+")


@router.get("/report")
async def download_attendance_report(
    batch: str,
    subject: str,
    from_date: str,
    to_date: str,
    user: StaffOnly,
    repo: Store,
    format: str = Query("csv", enum=["csv", "excel"]),
):
    """Download class attendance for a batch, subject and date range."""
    try:
        d_from = date.fromisoformat(from_date)
        d_to = date.fromisoformat(to_date)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format (YYYY-MM-DD)")
    if d_to < d_from:
        raise HTTPException(status_code=400, detail="to_date must not be before from_date")

    entries = await repo.list_attendance_between(batch, subject, d_from, d_to)
    if not entries:
        raise HTTPException(status_code=404, detail="No records found for the given criteria")

    df = attendance_frame(entries)
    stem = f"attendance_{_FILENAME_RE.sub('_', batch)}_{_FILENAME_RE.sub('_', subject)}_{from_date}_{to_date}"

    if format == "csv":
        stream = io.StringIO()
        df.to_csv(stream, index=False)
        return StreamingResponse(
            iter([stream.getvalue()]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={stem}.csv"},
        )
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Attendance")
    output.seek(0)
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={stem}.xlsx"},
    )
