# snapgram/services/storage_service.py
import uuid
import logging
from typing import Dict, Optional
from flask import Flask
from firebase_admin import storage

from snapgram.core.errors import NotFound, ValidationError
from snapgram.models.post import ImageFile
from snapgram.services.remote import run_remote

class StorageService:
    """
    Firebase Storage 관련 로직을 담당하는 서비스 클래스입니다.
    게시물 이미지 업로드, 미리보기 URL 발급, 삭제를 제공합니다.
    """

    def __init__(self, bucket=None, timeout: Optional[float] = None):
        """
        버킷은 생성자로 직접 주입하거나 init_app을 통해 설정합니다.
        """
        self.bucket = bucket
        self.timeout = timeout

    def init_app(self, app: Flask):
        """
        앱 초기화 과정에서 호출되어 Storage 버킷을 설정합니다.

        :param app: Flask 애플리케이션 객체
        """
        bucket_name = app.config.get('FIREBASE_STORAGE_BUCKET')
        if not bucket_name:
            raise ValueError("FIREBASE_STORAGE_BUCKET 설정이 .env 또는 설정 파일에 필요합니다.")

        self.bucket = storage.bucket(bucket_name)
        self.timeout = app.config.get('REMOTE_TIMEOUT')
        logging.info("StorageService: Firebase Storage 서비스가 성공적으로 초기화되었습니다.")

    def _require_bucket(self):
        if not self.bucket:
            raise RuntimeError("StorageService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")
        return self.bucket

    async def upload_file(self, file: ImageFile) -> Dict[str, str]:
        """
        이미지 파일을 'posts/' 경로에 고유한 이름으로 업로드합니다.

        :param file: 업로드할 이미지 파일
        :return: {"file_id": 버킷 내 경로, "file_url": gs:// 경로}
        """
        bucket = self._require_bucket()
        if not file or not file.content:
            raise ValidationError("업로드할 이미지 파일이 비어 있습니다.", operation="upload_file")

        extension = f".{file.extension}" if file.extension else ''
        file_id = f"posts/{uuid.uuid4()}{extension}"
        blob = bucket.blob(file_id)

        await run_remote("upload_file", blob.upload_from_string, file.content,
                         content_type=file.content_type, timeout=self.timeout)
        logging.info(f"이미지 업로드 완료: {file_id}")
        return {"file_id": file_id, "file_url": f"gs://{bucket.name}/{file_id}"}

    async def get_file_preview(self, file_id: str) -> str:
        """
        업로드된 파일을 공개로 전환하고 미리보기(공개) URL을 반환합니다.

        :param file_id: 버킷 내 파일 경로
        :raises NotFound: 파일이 존재하지 않는 경우
        """
        bucket = self._require_bucket()

        def _make_public() -> Optional[str]:
            blob = bucket.blob(file_id)
            if not blob.exists():
                return None
            blob.make_public()
            return blob.public_url

        public_url = await run_remote("get_file_preview", _make_public, timeout=self.timeout)
        if not public_url:
            raise NotFound(f"파일을 찾을 수 없습니다: {file_id}", operation="get_file_preview")
        return public_url

    async def delete_file(self, file_id: str) -> Dict[str, str]:
        """Storage에서 파일을 삭제합니다."""
        bucket = self._require_bucket()
        if not file_id:
            raise ValidationError("삭제할 파일 ID가 필요합니다.", operation="delete_file")

        await run_remote("delete_file", bucket.blob(file_id).delete, timeout=self.timeout)
        logging.info(f"이미지 삭제 완료: {file_id}")
        return {"status": "ok"}
