import logging

from fastapi import APIRouter, Depends

from app.database import DocumentStore, DocumentStoreError, find_documents, get_store
from app.errors import ApiError
from app.models.legacy import LegacyPatient, LoginRequest, PatientInfoResponse, ResultSet
from app.services.legacy_format import login_result, patient_info

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["patients"])

PATIENTS_DB = "patients"


@router.get("/patients")
async def list_patients(store: DocumentStore = Depends(get_store)) -> list[dict]:
    """List every patient document as stored."""
    try:
        return await store.post_all_docs(PATIENTS_DB, include_docs=True)
    except DocumentStoreError as e:
        logger.error("Error listing patients: %s", e)
        raise ApiError(500, "Error listing patients") from e


@router.post(
    "/login/user",
    response_model=ResultSet[LegacyPatient],
    response_model_exclude_none=True,
)
async def login_user(body: LoginRequest, store: DocumentStore = Depends(get_store)):
    """Look up a patient by user id and return it in the legacy login shape.

    The password is accepted for compatibility but not checked.
    """
    username = body.uid
    docs = await find_documents(
        store, PATIENTS_DB, {"user_id": username},
        f'Error during login for user "{username}"',
    )
    if not docs:
        logger.info("Login lookup found no patient for user %s", username)
        raise ApiError(404, f'User "{username}" not found')
    return login_result(docs)


@router.get(
    "/getInfo/patients/{patient_id}",
    response_model=PatientInfoResponse,
    response_model_exclude_none=True,
)
async def get_patient_info(patient_id: str, store: DocumentStore = Depends(get_store)):
    """Get patient demographics wrapped in the HCCMAREA envelope."""
    docs = await find_documents(
        store, PATIENTS_DB, {"patient_id": patient_id},
        f"Error getting patient data for {patient_id}",
    )
    if not docs:
        logger.info("No patient with ID %s", patient_id)
        raise ApiError(404, f"Patient with ID {patient_id} not found")
    return patient_info(docs)
