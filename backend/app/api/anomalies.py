from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.anomaly import SEVERITY_RANK, AnomalyReport, AnomalyStatistics, Severity
from app.services.anomaly_detector import BiometricAnomalyDetector

router = APIRouter()

_TYPES = ("simultaneous_sites", "impossible_gaps", "duplicate_scans", "unusual_hours", "excessive_scans")


@router.get("", response_model=AnomalyReport, summary="Detect biometric anomalies in a date range")
async def list_anomalies(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    types: list[str] | None = Query(default=None),
    min_severity: Severity | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> AnomalyReport:
    report = await BiometricAnomalyDetector(db).detect_anomalies(date_from, date_to)

    selected = set(types or _TYPES)
    threshold = SEVERITY_RANK[min_severity] if min_severity else 0
    return AnomalyReport(
        **{
            key: [a for a in getattr(report, key) if SEVERITY_RANK[a.severity] >= threshold]
            for key in _TYPES
            if key in selected
        }
    )


@router.get("/stats", response_model=AnomalyStatistics, summary="Anomaly counts by type and severity")
async def anomaly_stats(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> AnomalyStatistics:
    return await BiometricAnomalyDetector(db).get_statistics(date_from, date_to)
