from __future__ import annotations

from typing import Annotated

from fastapi import Depends, UploadFile

from clean_madurai.auth import LocalAuthProvider, get_auth_provider
from clean_madurai.database import get_store
from clean_madurai.domain import Upload
from clean_madurai.services.account_service import AccountService
from clean_madurai.services.admission_service import AdmissionService
from clean_madurai.services.blob_store import LocalBlobStore, get_blob_store
from clean_madurai.services.classifier import ComplaintClassifier, get_classifier
from clean_madurai.services.complaint_service import ComplaintService
from clean_madurai.services.document_store import DocumentStore


def to_upload(file: UploadFile | None) -> Upload | None:
    if file is None or not file.filename:
        return None
    return Upload(filename=file.filename, content=file.file.read(), content_type=file.content_type)


def get_account_service(
    store: Annotated[DocumentStore, Depends(get_store)],
    auth: Annotated[LocalAuthProvider, Depends(get_auth_provider)],
    blobs: Annotated[LocalBlobStore, Depends(get_blob_store)],
) -> AccountService:
    return AccountService(store, auth, blobs)


def get_admission_service(store: Annotated[DocumentStore, Depends(get_store)]) -> AdmissionService:
    return AdmissionService(store)


def get_complaint_service(
    store: Annotated[DocumentStore, Depends(get_store)],
    blobs: Annotated[LocalBlobStore, Depends(get_blob_store)],
    classifier: Annotated[ComplaintClassifier, Depends(get_classifier)],
) -> ComplaintService:
    return ComplaintService(store, blobs, classifier)
