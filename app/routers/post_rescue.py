# app/routers/post_rescue.py
"""
After-action reports and the cached report views.
GET list endpoints accept ?refresh=true to bypass the Report Cache for that call.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.post_rescue_form import (
    FixStatusResult, Message, MigrationResult, PostRescueFormCreate, PostRescueFormCreated,
)
from app.services import post_rescue_service, report_service
from app.services.authorization import Identity, require_capability

router = APIRouter(prefix="/post")

reader = require_capability("reports:read")
manager = require_capability("post_rescue:manage")
maintainer = require_capability("reports:maintain")


@router.get("/pending", summary="Dispatched rescues awaiting a report (map + table)")
def get_pending(refresh: bool = False, db: Session = Depends(get_db), _: Identity = Depends(reader)):
    return report_service.list_pending(db, refresh=refresh)


@router.get("/completed", summary="Completed rescues with a visible report")
def get_completed(refresh: bool = False, db: Session = Depends(get_db), _: Identity = Depends(reader)):
    return report_service.list_completed(db, refresh=refresh)


@router.get("/archived", summary="Archived reports")
def get_archived(alert_id: Optional[str] = Query(default=None, alias="alertID"), refresh: bool = False,
                 db: Session = Depends(get_db), _: Identity = Depends(reader)):
    return report_service.list_archived(db, alert_id, refresh=refresh)


@router.get("/aggregated", summary="Full report documents")
def get_aggregated(alert_id: Optional[str] = Query(default=None, alias="alertID"),
                   terminal_id: Optional[str] = Query(default=None, alias="terminalId"),
                   refresh: bool = False, db: Session = Depends(get_db), _: Identity = Depends(reader)):
    return report_service.aggregated_reports(db, alert_id, terminal_id, refresh=refresh)


@router.get("/table/aggregated", summary="Completed-table rows")
def get_table_aggregated(alert_id: Optional[str] = Query(default=None, alias="alertID"),
                         terminal_id: Optional[str] = Query(default=None, alias="terminalId"),
                         refresh: bool = False, db: Session = Depends(get_db), _: Identity = Depends(reader)):
    return report_service.aggregated_table(db, alert_id, terminal_id, refresh=refresh)


@router.get("/chart/alert-types", summary="Critical vs user-initiated counts over time")
def get_alert_type_chart(time_range: str = Query(default="last3months", alias="timeRange"),
                         refresh: bool = False, db: Session = Depends(get_db), _: Identity = Depends(reader)):
    return report_service.alert_type_chart(db, time_range, refresh=refresh)


@router.get("/report/{alert_id}", summary="Detailed report for PDF export")
def get_detailed_report(alert_id: str, db: Session = Depends(get_db), _: Identity = Depends(reader)):
    return report_service.detailed_report(db, alert_id)


@router.delete("/archive/{alert_id}", response_model=Message)
def archive_report(alert_id: str, db: Session = Depends(get_db), _: Identity = Depends(manager)):
    post_rescue_service.archive(db, alert_id)
    return {"message": "Post Rescue Form Archived Successfully"}


@router.post("/restore/{alert_id}", response_model=Message)
def restore_report(alert_id: str, db: Session = Depends(get_db), _: Identity = Depends(manager)):
    post_rescue_service.restore(db, alert_id)
    return {"message": "Post Rescue Form Restored Successfully"}


@router.delete("/delete/{alert_id}", response_model=Message,
               summary="Delete a report permanently — alert status is NOT rolled back")
def delete_report(alert_id: str, db: Session = Depends(get_db), _: Identity = Depends(manager)):
    post_rescue_service.delete_permanently(db, alert_id)
    return {"message": "Post Rescue Form Deleted Permanently"}


@router.delete("/cache", response_model=Message, summary="Wipe every Report Cache entry")
def clear_reports_cache(_: Identity = Depends(manager)):
    post_rescue_service.clear_cache()
    return {"message": "Reports cache cleared successfully"}


@router.post("/fix/rescue-form-status", response_model=FixStatusResult)
def fix_rescue_form_status(db: Session = Depends(get_db), _: Identity = Depends(maintainer)):
    return post_rescue_service.fix_rescue_form_status(db)


@router.post("/migrate/alert-types", response_model=MigrationResult)
def migrate_alert_types(db: Session = Depends(get_db), _: Identity = Depends(maintainer)):
    return post_rescue_service.migrate_alert_types(db)


# Declared last so /post/<static> paths above win
@router.post("/{alert_id}", response_model=PostRescueFormCreated, status_code=201,
             summary="File the after-action report")
async def create_post_rescue_form(alert_id: str, body: PostRescueFormCreate, db: Session = Depends(get_db),
                                  _: Identity = Depends(require_capability("post_rescue:create"))):
    form = await post_rescue_service.create_post_rescue_form(db, alert_id, body)
    return {"message": "Post Rescue Form Created", "new_form": form}
