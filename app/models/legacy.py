"""Pydantic models for the legacy response envelopes.

Field names are Python-style; the legacy key names are aliases and are what
goes over the wire (FastAPI serializes response models by alias). Fields
left as None are dropped from responses, so a source document missing a
field produces a record missing the corresponding legacy key.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

LEGACY_REQUEST_ID = "01IPAT"
GENERAL_PRACTICE = "GENERAL PRACTICE"


class LegacyModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(LegacyModel):
    uid: str = Field(alias="UID")
    password: str | None = Field(default=None, alias="PASS")


class LegacyPatient(LegacyModel):
    address: Any = Field(default=None, alias="CA_ADDRESS")
    city: Any = Field(default=None, alias="CA_CITY")
    birthdate: Any = Field(default=None, alias="CA_DOB")
    first_name: Any = Field(default=None, alias="CA_FIRST_NAME")
    gender: Any = Field(default=None, alias="CA_GENDER")
    last_name: Any = Field(default=None, alias="CA_LAST_NAME")
    postcode: Any = Field(default=None, alias="CA_POSTCODE")
    user_id: Any = Field(default=None, alias="CA_USERID")
    patient_id: Any = Field(default=None, alias="PATIENTID")


class LegacyAppointment(LegacyModel):
    date: Any = Field(default=None, alias="APPT_DATE")
    time: Any = Field(default=None, alias="APPT_TIME")
    med_field: str = Field(default=GENERAL_PRACTICE, alias="MED_FIELD")


class LegacyObservation(LegacyModel):
    code: Any = Field(default=None, alias="CODE")
    date: Any = Field(default=None, alias="DATEOFOBSERVATION")
    description: Any = Field(default=None, alias="DESCRIPTION")
    patient: str | None = Field(default=None, alias="PATIENT")
    units: Any = Field(default=None, alias="UNITS")
    id: Any = Field(default=None, alias="id")
    numeric_value: Any = Field(default=None, alias="NUMERICVALUE")
    character_value: Any = Field(default=None, alias="CHARACTERVALUE")


class ResultSet(LegacyModel, Generic[T]):
    """``{"ResultSet Output": [...]}`` list envelope."""
    output: list[T] = Field(default_factory=list, alias="ResultSet Output")


class PatientInfoArea(LegacyModel):
    request_id: str = Field(default=LEGACY_REQUEST_ID, alias="CA_REQUEST_ID")
    return_code: int = Field(default=0, alias="CA_RETURN_CODE")
    patient_id: Any = Field(default=None, alias="CA_PATIENT_ID")
    patient_request: LegacyPatient = Field(alias="CA_PATIENT_REQUEST")


class PatientInfoResponse(LegacyModel):
    area: PatientInfoArea = Field(alias="HCCMAREA")


class MedicationListRequest(LegacyModel):
    medications: list[dict[str, Any]] = Field(default_factory=list, alias="CA_MEDICATIONS")


class PrescriptionArea(LegacyModel):
    request_id: str = Field(default=LEGACY_REQUEST_ID, alias="CA_REQUEST_ID")
    return_code: int = Field(default=0, alias="CA_RETURN_CODE")
    patient_id: str = Field(alias="CA_PATIENT_ID")
    medication_request: MedicationListRequest = Field(alias="CA_LIST_MEDICATION_REQUEST")


class PrescriptionResponse(LegacyModel):
    area: PrescriptionArea = Field(alias="GETMEDO")
