"""
Unit tests for the uniform operation result and its HTTP translation.
"""
import json

import pytest

from smile_cms.core.errors import ErrorCode, ResourceNotFoundError, ValidationError
from smile_cms.core.operations import OperationResult, operation, operation_response


class _Sample:
    @operation("do the thing", success_status=201)
    async def create(self, value):
        if value == "bad":
            raise ValidationError("Value is bad", field="value")
        if value == "boom":
            raise RuntimeError("backend exploded")
        return {"value": value}


@pytest.mark.unit
@pytest.mark.asyncio
class TestOperationDecorator:
    async def test_success_is_wrapped_with_status(self):
        result = await _Sample().create("ok")

        assert result == OperationResult(success=True, data={"value": "ok"}, status_code=201)

    async def test_application_error_is_converted(self):
        result = await _Sample().create("bad")

        assert result.success is False
        assert result.status_code == 400
        assert result.error == "Value is bad"
        assert result.error_code == ErrorCode.INVALID_INPUT.value
        assert result.details == {"field": "value"}

    async def test_unexpected_error_becomes_500_with_message(self):
        result = await _Sample().create("boom")

        assert result.status_code == 500
        assert result.error == "backend exploded"
        assert result.error_code == ErrorCode.INTERNAL_ERROR.value


@pytest.mark.unit
class TestOperationResponse:
    def test_raw_success(self):
        response = operation_response(OperationResult.ok({"id": "u1"}))

        assert response.status_code == 200
        assert json.loads(response.body) == {"id": "u1"}

    def test_enveloped_success(self):
        response = operation_response(OperationResult.ok([1, 2], status_code=201), envelope=True)

        assert response.status_code == 201
        assert json.loads(response.body) == {"success": True, "data": [1, 2]}

    def test_failure_shape(self):
        response = operation_response(OperationResult.failed(ResourceNotFoundError("Unit", "u9")), envelope=True)

        assert response.status_code == 404
        body = json.loads(response.body)
        assert body["error"] == "Unit with ID 'u9' not found"
        assert body["error_code"] == ErrorCode.RESOURCE_NOT_FOUND.value
        assert body["details"]["resource_id"] == "u9"
