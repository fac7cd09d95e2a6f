"""
DID document construction from a fetched did:hpass payload.
"""

import json
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.errors import DocumentInvalid, ResourceFetchError
from shared.logging import get_logger

from ..identifiers import Identifier

DID_CONTEXT = "https://www.w3.org/ns/did/v1"
DID_RESOLUTION_CONTEXT = "https://w3id.org/did-resolution/v1"
DID_CONTENT_TYPE = "application/did+ld+json"

DID_PAYLOAD = "payload"
DID_PUBLIC_KEY = "publicKey"
DID_ID = "id"
DID_TYPE = "type"
DID_PUBLIC_KEY_JWK = "publicKeyJwk"
DID_CONTROLLER = "controller"
DID_CREATED = "created"
DID_UPDATED = "updated"

DID_P_256 = "P-256"
DID_JSON_WEB_KEY_2020 = "JsonWebKey2020"

# UTC, no sub-second precision, e.g. 2020-12-20T19:17:47Z
DID_DATE_TIME_PATTERN = re.compile(
    r"^\d{4}-(0[1-9]|1[012])-(0[1-9]|[12][0-9]|3[01])T([01][0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9]Z$"
)

logger = get_logger("resolver.document")


class VerificationMethod(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    controller: Any
    public_key_jwk: Optional[Dict[str, Any]] = Field(default=None, alias="publicKeyJwk")


class DIDDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    context: str = Field(default=DID_CONTEXT, alias="@context")
    id: str
    verification_method: List[VerificationMethod] = Field(default_factory=list, alias="verificationMethod")


class ResolutionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    context: str = Field(default=DID_RESOLUTION_CONTEXT, alias="@context")
    did_document: DIDDocument = Field(alias="didDocument")
    did_resolution_metadata: Dict[str, Any] = Field(
        default_factory=lambda: {"contentType": DID_CONTENT_TYPE},
        alias="didResolutionMetadata"
    )
    did_document_metadata: Dict[str, Any] = Field(default_factory=dict, alias="didDocumentMetadata")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_payload(body: str) -> Dict[str, Any]:
    """Extract the top-level ``payload`` object from a fetched body."""
    try:
        document = json.loads(body)
    except ValueError as e:
        logger.error("Could not extract JSON object from network response")
        raise ResourceFetchError("Could not extract JSON object from network response") from e

    payload = document.get(DID_PAYLOAD) if isinstance(document, dict) else None
    if not isinstance(payload, dict):
        logger.error("DID payload not found")
        raise ResourceFetchError("DID payload not found in network response")
    return payload


def _mandatory(public_key: Dict[str, Any], key: str) -> Any:
    value = public_key.get(key)
    if value is None:
        logger.error("Mandatory key not found", key=key)
        raise DocumentInvalid(f"Mandatory key not found: {key}", details={"key": key})
    return value


def verification_methods(payload: Dict[str, Any]) -> List[VerificationMethod]:
    public_keys = payload.get(DID_PUBLIC_KEY)
    if not isinstance(public_keys, list):
        logger.error("Value for key is null", key=DID_PUBLIC_KEY)
        raise DocumentInvalid(f"Value for key is null: {DID_PUBLIC_KEY}", details={"key": DID_PUBLIC_KEY})

    methods = []
    for public_key in public_keys:
        if not isinstance(public_key, dict):
            raise DocumentInvalid("Public key entry is not an object")

        key_id = _mandatory(public_key, DID_ID)
        key_type = _mandatory(public_key, DID_TYPE)
        if key_type == DID_P_256:
            key_type = DID_JSON_WEB_KEY_2020
        controller = _mandatory(public_key, DID_CONTROLLER)

        jwk = public_key.get(DID_PUBLIC_KEY_JWK)
        methods.append(VerificationMethod(
            id=str(key_id),
            type=str(key_type),
            controller=controller,
            public_key_jwk=jwk if isinstance(jwk, dict) else None
        ))
    return methods


def method_metadata(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Copy well-formed ``created``/``updated`` values; warn about the rest."""
    metadata: Dict[str, Any] = {}
    for key in (DID_CREATED, DID_UPDATED):
        value = payload.get(key)
        if isinstance(value, str) and DID_DATE_TIME_PATTERN.fullmatch(value):
            metadata[key] = value
        else:
            logger.warning(
                "Date is invalid or incorrectly formatted, not added to metadata",
                key=key,
                value=value
            )
    return metadata


def build_resolution_result(identifier: Identifier, body: str) -> ResolutionResult:
    payload = parse_payload(body)
    document = DIDDocument(
        id=identifier.did,
        verification_method=verification_methods(payload)
    )
    return ResolutionResult(
        did_document=document,
        did_document_metadata=method_metadata(payload)
    )
