"""Operation kind parsing, payload validation and policy action naming."""

from enum import Enum
from typing import Any, Mapping

from ..errors import InvalidRequest, UnsupportedOperation


class OperationKind(str, Enum):
    """Closed set of provider operations the broker can execute."""

    CREATE_TABLE = "create_table"
    QUERY = "query"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


# HTTP-style status for a successful provider call of each kind
SUCCESS_STATUS: dict[OperationKind, int] = {
    OperationKind.CREATE_TABLE: 201,
    OperationKind.QUERY: 200,
    OperationKind.INSERT: 201,
    OperationKind.UPDATE: 200,
    OperationKind.DELETE: 202,
}


def parse_operation_kind(operation_type: Any) -> OperationKind:
    """
    Parse a raw operation type into an OperationKind.

    Args:
        operation_type: Operation name as received from the caller

    Returns:
        Matching OperationKind

    Raises:
        UnsupportedOperation: If the name is not one of the known kinds
    """
    if isinstance(operation_type, OperationKind):
        return operation_type
    try:
        return OperationKind(operation_type)
    except ValueError:
        raise UnsupportedOperation(
            f"Unsupported operation: {operation_type}",
            details={
                "operation_type": str(operation_type),
                "supported": [kind.value for kind in OperationKind],
            },
        ) from None


def validate_payload(kind: OperationKind, payload: Any) -> None:
    """
    Check the payload shape required by an operation kind.

    create_table needs a table ``name``; every other kind targets an existing
    ``table``. Mutations additionally need their data: ``values`` for insert
    and update, ``filters`` for update and delete.

    Raises:
        InvalidRequest: If a required parameter is missing or malformed
    """
    if not isinstance(payload, Mapping):
        raise InvalidRequest(
            "Payload must be an object",
            details={"operation_type": kind.value},
        )

    if kind is OperationKind.CREATE_TABLE:
        required = ("name",)
    elif kind is OperationKind.QUERY:
        required = ("table",)
    elif kind is OperationKind.INSERT:
        required = ("table", "values")
    elif kind is OperationKind.UPDATE:
        required = ("table", "values", "filters")
    else:
        required = ("table", "filters")

    for param in required:
        value = payload.get(param)
        if value is None or value == "" or value == [] or value == {}:
            raise InvalidRequest(
                f"Missing required parameter: {param}",
                details={"operation_type": kind.value, "parameter": param},
            )

    for param in ("name", "table"):
        if param in payload and not isinstance(payload[param], str):
            raise InvalidRequest(
                f"Invalid parameter: {param} must be a string",
                details={"operation_type": kind.value, "parameter": param},
            )


def policy_action(provider: str, kind: OperationKind) -> str:
    """Name the action checked by the policy engine, e.g. ``supabase.query``."""
    return f"{provider}.{kind.value}"
