import logging

from fastapi import APIRouter, Depends

from app.database import DocumentStore, find_documents, get_store
from app.errors import ApiError
from app.models.legacy import LegacyAppointment, LegacyObservation, PrescriptionResponse, ResultSet
from app.services.legacy_format import appointments_result, observations_result, prescription_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["clinical"])


@router.get(
    "/getInfo/prescription/{patient_id}",
    response_model=PrescriptionResponse,
    response_model_exclude_none=True,
)
async def get_prescriptions(patient_id: str, store: DocumentStore = Depends(get_store)):
    """Get a patient's prescriptions in the GETMEDO envelope."""
    docs = await find_documents(
        store, "prescriptions", {"patient_id": patient_id},
        f"Error getting prescription data for {patient_id}",
    )
    if not docs:
        logger.info("No prescriptions for patient %s", patient_id)
        raise ApiError(404, f"Prescription data not found for {patient_id}")
    return prescription_result(patient_id, docs)


@router.get(
    "/appointments/list/{patient_id}",
    response_model=ResultSet[LegacyAppointment],
    response_model_exclude_none=True,
)
async def list_appointments(patient_id: str, store: DocumentStore = Depends(get_store)):
    docs = await find_documents(
        store, "appointments", {"patient_id": patient_id},
        f'Error getting appointments for patient "{patient_id}"',
    )
    if not docs:
        logger.info("No appointments for patient %s", patient_id)
        raise ApiError(404, f'Appointments not found for patient "{patient_id}"')
    return appointments_result(docs)


@router.get(
    "/listObs/{patient_id}",
    response_model=ResultSet[LegacyObservation],
    response_model_exclude_none=True,
)
async def list_observations(patient_id: str, store: DocumentStore = Depends(get_store)):
    """List a patient's observations.

    Each record carries NUMERICVALUE or CHARACTERVALUE depending on which
    one the stored observation has.
    """
    docs = await find_documents(
        store, "observations", {"patient_id": patient_id},
        f'Error getting observations for patient "{patient_id}"',
    )
    if not docs:
        logger.info("No observations for patient %s", patient_id)
        raise ApiError(404, f'Observations not found for patient "{patient_id}"')
    return observations_result(patient_id, docs)
