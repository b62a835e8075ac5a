"""Adapters between raw caller input and the v1 contracts."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from coord_platform.errors import InvalidInputError

ContractT = TypeVar("ContractT", bound=BaseModel)


def _describe_errors(error: ValidationError) -> list[dict[str, Any]]:
    fields = []
    for item in error.errors():
        fields.append(
            {
                "field": ".".join(str(part) for part in item.get("loc", ())) or "__root__",
                "message": item.get("msg", "invalid value"),
            }
        )
    return fields


def parse_contract(contract: type[ContractT], data: dict[str, Any]) -> ContractT:
    """Validate *data* against *contract*, raising ``InvalidInputError`` on failure."""
    try:
        return contract.model_validate(data)
    except ValidationError as e:
        fields = _describe_errors(e)
        names = ", ".join(f["field"] for f in fields)
        raise InvalidInputError(
            f"Validation failed for {contract.__name__}: {names}",
            fields=fields,
        ) from e
