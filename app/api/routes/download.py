from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.api.deps import get_current_account_id
from app.db.session import get_db
from app.services.downloads.service import DownloadService

router = APIRouter(prefix="/api", tags=["download"])


def get_download_service(db: Session = Depends(get_db)) -> DownloadService:
    return DownloadService(db)


@router.get("/download")
def download_asset(
    asset_id: str = Query("", alias="assetId"),
    fmt: str = Query("png", alias="format"),
    account_id: str = Depends(get_current_account_id),
    service: DownloadService = Depends(get_download_service),
) -> Response:
    result = service.download(account_id, asset_id, fmt)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )
