from pathlib import Path
from fastapi import UploadFile
from datetime import datetime
import aiofiles
import uuid
import logging
import os

logger = logging.getLogger(__name__)

async def save_uploaded_file(
    file: UploadFile,
    submission_id: str,
    upload_dir: Path
) -> Path:
    """업로드 파일을 백엔드 전송 전 임시 저장하고 경로 반환"""
    try:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        unique_id = str(uuid.uuid4())[:8]
        original_name = os.path.basename(file.filename or "upload.bin")
        full_path = upload_dir / submission_id / f"{timestamp}_{unique_id}" / original_name
        full_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(full_path, 'wb') as f:
            content = await file.read()
            await f.write(content)

        return full_path

    except Exception as e:
        logger.error(f"파일 저장 중 오류: {str(e)}")
        raise

def remove_file(path: Path) -> None:
    try:
        if path.exists():
            path.unlink()
        path.parent.rmdir()
    except OSError as e:
        logger.warning(f"임시 파일 삭제 실패 {path}: {e}")
