"""Result types returned by the service layer.

Services never raise for domain failures; they return a ``ServiceResult``
whose ``outcome`` maps to a stable HTTP status. Routes turn non-OK results
into ``HTTPException``.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from fastapi import status


class Outcome(str, Enum):
    OK = "ok"
    CREATED = "created"
    INVALID_CREDENTIAL = "invalid_credential"
    EXPIRED_CREDENTIAL = "expired_credential"
    MALFORMED_CREDENTIAL = "malformed_credential"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    DOCTOR_NOT_FOUND = "doctor_not_found"
    CONFLICT = "conflict"
    SLOT_UNAVAILABLE = "slot_unavailable"
    INVALID_INPUT = "invalid_input"
    STORAGE_FAILURE = "storage_failure"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    Outcome.OK: status.HTTP_200_OK,
    Outcome.CREATED: status.HTTP_201_CREATED,
    Outcome.INVALID_CREDENTIAL: status.HTTP_401_UNAUTHORIZED,
    Outcome.EXPIRED_CREDENTIAL: status.HTTP_401_UNAUTHORIZED,
    Outcome.MALFORMED_CREDENTIAL: status.HTTP_401_UNAUTHORIZED,
    Outcome.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    Outcome.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    Outcome.DOCTOR_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    Outcome.CONFLICT: status.HTTP_409_CONFLICT,
    Outcome.SLOT_UNAVAILABLE: status.HTTP_400_BAD_REQUEST,
    Outcome.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    Outcome.STORAGE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class ServiceResult:
    outcome: Outcome
    message: str
    data: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.OK, Outcome.CREATED)

    @property
    def status_code(self) -> int:
        return self.outcome.status_code

    @classmethod
    def success(cls, message: str, data: Any = None) -> "ServiceResult":
        return cls(Outcome.OK, message, data)

    @classmethod
    def created(cls, message: str, data: Any = None) -> "ServiceResult":
        return cls(Outcome.CREATED, message, data)

    @classmethod
    def failure(cls, outcome: Outcome, message: str) -> "ServiceResult":
        return cls(outcome, message)
