"""Reshape stored documents into the legacy response envelopes.

Documents come back from Cloudant with the CSV column names as keys; the
downstream consumer expects a fixed set of legacy key names. Every mapping
here renames keys on the structured record, never on serialized text, so a
value or an unrelated key that merely contains a source key name is left
alone.
"""

from typing import Any

from app.models.legacy import (
    LegacyAppointment,
    LegacyObservation,
    LegacyPatient,
    MedicationListRequest,
    PatientInfoArea,
    PatientInfoResponse,
    PrescriptionArea,
    PrescriptionResponse,
    ResultSet,
)

# Storage metadata stripped from anything returned field-by-field
METADATA_FIELDS = ("_id", "_rev")

PRESCRIPTION_FIELD_MAP = {
    "drug_name": "CA_DRUG_NAME",
    "patient_id": "PATIENT",
    "medication_id": "CA_MEDICATION_ID",
    "reason": "REASONDESCRIPTION",
}

RETURN_CODE_FOUND = 0
RETURN_CODE_NOT_FOUND = 1


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _return_code(docs: list[dict]) -> int:
    # Handlers answer 404 before shaping an empty result, so NOT_FOUND is never sent.
    return RETURN_CODE_FOUND if docs else RETURN_CODE_NOT_FOUND


def to_legacy_patient(doc: dict) -> LegacyPatient:
    return LegacyPatient(
        address=doc.get("address"),
        city=doc.get("city"),
        birthdate=doc.get("birthdate"),
        first_name=doc.get("first_name"),
        gender=doc.get("gender"),
        last_name=doc.get("last_name"),
        postcode=doc.get("postcode"),
        user_id=doc.get("user_id"),
        patient_id=doc.get("patient_id"),
    )


def login_result(docs: list[dict]) -> ResultSet[LegacyPatient]:
    """Legacy login result: the first matching patient only."""
    return ResultSet[LegacyPatient](output=[to_legacy_patient(docs[0])])


def patient_info(docs: list[dict]) -> PatientInfoResponse:
    patient = docs[0]
    return PatientInfoResponse(
        area=PatientInfoArea(
            return_code=_return_code(docs),
            patient_id=patient.get("patient_id"),
            patient_request=to_legacy_patient(patient),
        )
    )


def strip_metadata(doc: dict) -> dict:
    return {k: v for k, v in doc.items() if k not in METADATA_FIELDS}


def rename_prescription(doc: dict) -> dict[str, Any]:
    """Rename prescription keys to their legacy names, keeping other keys."""
    return {
        PRESCRIPTION_FIELD_MAP.get(key, key): value
        for key, value in strip_metadata(doc).items()
    }


def prescription_result(patient_id: str, docs: list[dict]) -> PrescriptionResponse:
    return PrescriptionResponse(
        area=PrescriptionArea(
            return_code=_return_code(docs),
            patient_id=patient_id,
            medication_request=MedicationListRequest(
                medications=[rename_prescription(doc) for doc in docs],
            ),
        )
    )


def to_legacy_appointment(doc: dict) -> LegacyAppointment:
    return LegacyAppointment(date=doc.get("date"), time=doc.get("time"))


def appointments_result(docs: list[dict]) -> ResultSet[LegacyAppointment]:
    return ResultSet[LegacyAppointment](output=[to_legacy_appointment(doc) for doc in docs])


def to_legacy_observation(patient_id: str, doc: dict) -> LegacyObservation:
    """Project an observation; a value key is only set when its source is non-empty."""
    observation = LegacyObservation(
        code=doc.get("code"),
        date=doc.get("date"),
        description=doc.get("description"),
        patient=patient_id,
        units=doc.get("units"),
        id=doc.get("id"),
    )
    if _present(doc.get("numeric_value")):
        observation.numeric_value = doc["numeric_value"]
    if _present(doc.get("character_value")):
        observation.character_value = doc["character_value"]
    return observation


def observations_result(patient_id: str, docs: list[dict]) -> ResultSet[LegacyObservation]:
    return ResultSet[LegacyObservation](
        output=[to_legacy_observation(patient_id, doc) for doc in docs]
    )
