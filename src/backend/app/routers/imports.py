"""
Import API router for booking documents.

Accepts check-in/check-out control sheets (PDF or image uploads, or
pasted text) and returns the batch import report.
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from typing import List, Optional
import logging

from app.config import settings
from app.dependencies import get_pipeline, get_storage
from app.models.reservation import DocumentRole
from app.services.ingestion import ImportDocument, ImportPipeline
from app.services.storage import StorageService
from app.utils.errors import CatalogUnavailable

router = APIRouter(prefix="/imports", tags=["imports"])
logger = logging.getLogger(__name__)

ALLOWED_TYPES = ["application/pdf", "image/jpeg", "image/jpg", "image/png"]


class TextDocument(BaseModel):
    """A document whose text is already available."""
    filename: str
    text: str
    role: Optional[DocumentRole] = None


class TextImportRequest(BaseModel):
    documents: List[TextDocument]


def _catalog_unavailable(e: CatalogUnavailable) -> HTTPException:
    logger.error("Import aborted, property catalog unavailable", extra={"error": str(e)})
    return HTTPException(
        status_code=503,
        detail="Catálogo de propriedades indisponível. Tente novamente mais tarde."
    )


@router.post("")
async def import_documents(
    files: List[UploadFile] = File(...),
    pipeline: ImportPipeline = Depends(get_pipeline),
    storage: StorageService = Depends(get_storage)
):
    """
    Import uploaded check-in/check-out documents.

    This endpoint:
    1. Validates file type (PDF, JPG, PNG) and size
    2. Stores each file under a content-addressed path
    3. Runs the import pipeline over the whole batch

    Returns:
        Import report with per-document outcomes and per-reservation decisions
    """
    try:
        documents = []
        for upload in files:
            if upload.content_type not in ALLOWED_TYPES:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid file type: {upload.content_type}. Allowed: PDF, JPG, PNG"
                )

            file_data = await upload.read()
            file_size_mb = len(file_data) / (1024 * 1024)
            if file_size_mb > settings.MAX_UPLOAD_MB:
                raise HTTPException(
                    status_code=400,
                    detail=f"File too large: {file_size_mb:.2f}MB. Maximum: {settings.MAX_UPLOAD_MB}MB"
                )

            filename = upload.filename or "documento.pdf"
            file_hash, file_path = storage.store_document(filename, file_data, upload.content_type)
            logger.info("Document received", extra={
                "document": filename,
                "file_hash": file_hash,
                "file_path": file_path
            })

            documents.append(ImportDocument(
                filename=filename,
                content=file_data,
                mime_type=upload.content_type
            ))

        report = await run_in_threadpool(pipeline.run, documents)
        return report.to_dict()

    except HTTPException:
        raise
    except CatalogUnavailable as e:
        raise _catalog_unavailable(e)
    except Exception as e:
        logger.error("Import failed", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to import documents: {str(e)}"
        )


@router.post("/text")
async def import_text(
    request: TextImportRequest,
    pipeline: ImportPipeline = Depends(get_pipeline)
):
    """Import documents given as plain text (e.g. pasted control sheets)."""
    if not request.documents:
        raise HTTPException(status_code=400, detail="No documents provided")

    try:
        documents = [
            ImportDocument(
                filename=doc.filename,
                mime_type="text/plain",
                role=doc.role,
                text=doc.text
            )
            for doc in request.documents
        ]
        report = await run_in_threadpool(pipeline.run, documents)
        return report.to_dict()

    except CatalogUnavailable as e:
        raise _catalog_unavailable(e)
    except Exception as e:
        logger.error("Text import failed", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to import documents: {str(e)}"
        )
