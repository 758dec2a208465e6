"""
Identity Verification Module

Primary (identity fields) and advanced (document images) verification
requests. A user may submit several requests of each kind; the most
recently created one is authoritative for status queries.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum

from .storage import StorageInterface
from .lifecycle import PENDING, RequestRecord, record_base_from_dict
from .errors import MissingFields
from .parsing import normalize_username
from .logging_config import get_logger, log_action


class VerificationKind(Enum):
    PRIMARY = "primary"
    ADVANCED = "advanced"


@dataclass
class VerificationRequest(RequestRecord):
    kind: VerificationKind
    document_type: str
    document_number: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    front_image: Optional[str] = None
    back_image: Optional[str] = None
    selfie_image: Optional[str] = None


def _require(**fields) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise MissingFields(missing)


class VerificationDesk:
    """
    Accepts verification requests and answers status queries
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "verifications"
        self.logger = get_logger("trading_ledger.verification")

    def submit_primary(self, username: str, first_name: str, last_name: str,
                       document_type: str, document_number: str) -> VerificationRequest:
        """Record a pending primary verification"""
        username = normalize_username(username)
        _require(username=username, first_name=first_name, last_name=last_name,
                 document_type=document_type, document_number=document_number)
        return self._create(
            username, VerificationKind.PRIMARY,
            document_type=document_type, document_number=document_number,
            first_name=first_name, last_name=last_name,
        )

    def submit_advanced(self, username: str, document_type: str, document_number: str,
                        front_image: Optional[str], back_image: Optional[str],
                        selfie_image: Optional[str]) -> VerificationRequest:
        """Record a pending advanced verification with three image references"""
        username = normalize_username(username)
        _require(username=username, document_type=document_type, document_number=document_number)
        _require(front_image=front_image, back_image=back_image, selfie_image=selfie_image)
        return self._create(
            username, VerificationKind.ADVANCED,
            document_type=document_type, document_number=document_number,
            front_image=front_image, back_image=back_image, selfie_image=selfie_image,
        )

    def get_request(self, request_id: int) -> Optional[VerificationRequest]:
        data = self.storage.load(self.table_name, str(request_id))
        return self._from_dict(data) if data else None

    def list_requests(self, username: Optional[str] = None) -> List[VerificationRequest]:
        """Verification requests newest first"""
        username = normalize_username(username)
        if username:
            rows = self.storage.find(self.table_name, {"username": username})
        else:
            rows = self.storage.load_all(self.table_name)
        return sorted((self._from_dict(d) for d in rows), key=lambda r: r.id, reverse=True)

    def latest(self, username: str, kind: VerificationKind) -> Optional[VerificationRequest]:
        """Most recently created request of a kind, by id"""
        username = normalize_username(username)
        rows = self.storage.find(self.table_name, {"username": username, "kind": kind.value})
        if not rows:
            return None
        return self._from_dict(max(rows, key=lambda d: int(d['id'])))

    def get_status(self, username: Optional[str]) -> Dict[str, Optional[str]]:
        """
        Current verification status per kind

        Returns:
            {"primary": status or None, "advanced": status or None}
        """
        statuses = {kind.value: None for kind in VerificationKind}
        username = normalize_username(username)
        if not username:
            return statuses
        for kind in VerificationKind:
            request = self.latest(username, kind)
            if request:
                statuses[kind.value] = request.status
        return statuses

    def _create(self, username: str, kind: VerificationKind, **fields) -> VerificationRequest:
        now = datetime.now(timezone.utc)
        with self.storage.atomic():
            request = VerificationRequest(
                id=self.storage.next_id(self.table_name),
                created_at=now,
                updated_at=now,
                username=username,
                status=PENDING,
                kind=kind,
                **fields
            )
            data = request.to_dict()
            data['kind'] = kind.value
            self.storage.save(self.table_name, str(request.id), data)

        log_action(
            self.logger, "info", f"Verification submitted: {kind.value}",
            user_id=username, action="submit_verification",
            resource=f"verification:{request.id}",
            extra={"kind": kind.value, "document_type": request.document_type}
        )
        return request

    def _from_dict(self, data: Dict) -> VerificationRequest:
        return VerificationRequest(
            kind=VerificationKind(data['kind']),
            document_type=data['document_type'],
            document_number=data['document_number'],
            first_name=data.get('first_name'),
            last_name=data.get('last_name'),
            front_image=data.get('front_image'),
            back_image=data.get('back_image'),
            selfie_image=data.get('selfie_image'),
            **record_base_from_dict(data)
        )
