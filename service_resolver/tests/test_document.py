"""
Unit tests for DID document construction.
"""

import json

import pytest

from service_resolver.app.identifiers import Identifier
from service_resolver.app.resolution.document import (
    DID_CONTENT_TYPE,
    DID_CONTEXT,
    DID_RESOLUTION_CONTEXT,
    build_resolution_result,
    method_metadata,
    parse_payload,
    verification_methods,
)
from shared.errors import DocumentInvalid, ResourceFetchError
from shared.test_helpers import VALID_DID, test_data_factory


class TestParsePayload:
    """Test cases for payload extraction."""

    def test_payload_extracted(self):
        body = json.dumps({"payload": {"id": VALID_DID}})
        assert parse_payload(body) == {"id": VALID_DID}

    @pytest.mark.parametrize("body", [
        "",
        "not json",
        json.dumps([1, 2, 3]),
        json.dumps({"data": {}}),
        json.dumps({"payload": "text"}),
    ])
    def test_unusable_bodies_rejected(self, body):
        with pytest.raises(ResourceFetchError) as exc_info:
            parse_payload(body)

        assert exc_info.value.code == "RESOURCE_FETCH_ERROR"


class TestVerificationMethods:
    """Test cases for public key conversion."""

    def test_p256_mapped_to_json_web_key_2020(self):
        payload = test_data_factory.create_did_body()["payload"]

        methods = verification_methods(payload)

        assert len(methods) == 1
        assert methods[0].type == "JsonWebKey2020"
        assert methods[0].id == f"{VALID_DID}#key-1"
        assert methods[0].controller == VALID_DID
        assert methods[0].public_key_jwk["crv"] == "P-256"

    def test_other_key_types_kept(self):
        payload = test_data_factory.create_did_body(key_type="Ed25519VerificationKey2018")["payload"]
        assert verification_methods(payload)[0].type == "Ed25519VerificationKey2018"

    def test_missing_public_key_list_rejected(self):
        with pytest.raises(DocumentInvalid) as exc_info:
            verification_methods({"id": VALID_DID})

        assert exc_info.value.code == "DOCUMENT_INVALID"
        assert exc_info.value.details["key"] == "publicKey"

    @pytest.mark.parametrize("key", ["id", "type", "controller"])
    def test_missing_mandatory_key_rejected(self, key):
        payload = test_data_factory.create_did_body()["payload"]
        del payload["publicKey"][0][key]

        with pytest.raises(DocumentInvalid) as exc_info:
            verification_methods(payload)

        assert exc_info.value.details["key"] == key

    def test_empty_key_list_allowed(self):
        assert verification_methods({"publicKey": []}) == []


class TestMethodMetadata:
    """Test cases for created/updated metadata."""

    def test_well_formed_dates_copied(self):
        payload = test_data_factory.create_did_body()["payload"]

        assert method_metadata(payload) == {
            "created": "2020-12-20T19:17:47Z",
            "updated": "2021-01-05T08:00:00Z"
        }

    @pytest.mark.parametrize("value", [
        "2020-12-20T19:17:47.123Z",
        "2020-12-20 19:17:47Z",
        "2020-13-20T19:17:47Z",
        "2020-12-20T19:17:47Z\n",
        1608491867,
    ])
    def test_ill_formed_dates_dropped(self, value):
        payload = test_data_factory.create_did_body(updated=None)["payload"]
        payload["created"] = value

        assert method_metadata(payload) == {}

    def test_missing_dates_dropped(self):
        payload = test_data_factory.create_did_body(created=None, updated=None)["payload"]
        assert method_metadata(payload) == {}


class TestBuildResolutionResult:
    """Test cases for the full resolution result."""

    def test_result_shape(self):
        body = json.dumps(test_data_factory.create_did_body())

        result = build_resolution_result(Identifier.parse(VALID_DID), body).to_json()

        assert result["@context"] == DID_RESOLUTION_CONTEXT
        assert result["didResolutionMetadata"] == {"contentType": DID_CONTENT_TYPE}
        assert result["didDocumentMetadata"]["created"] == "2020-12-20T19:17:47Z"

        document = result["didDocument"]
        assert document["@context"] == DID_CONTEXT
        assert document["id"] == VALID_DID
        assert document["verificationMethod"][0]["type"] == "JsonWebKey2020"
        assert document["verificationMethod"][0]["publicKeyJwk"]["kty"] == "EC"

    def test_key_without_jwk_omits_field(self):
        body = test_data_factory.create_did_body()
        del body["payload"]["publicKey"][0]["publicKeyJwk"]

        result = build_resolution_result(Identifier.parse(VALID_DID), json.dumps(body)).to_json()

        assert "publicKeyJwk" not in result["didDocument"]["verificationMethod"][0]
