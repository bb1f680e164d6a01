"""
Domain models — the types the engine and flows share.

All models are re-exported here for convenient access:

    from crewcli.core.models import Operation, ParameterStore, Receipt
"""

from crewcli.core.models.config import CliConfig, FlowDefaults
from crewcli.core.models.field import ChoiceInput, FieldVariant, FreeFormInput, InputField
from crewcli.core.models.operation import (
    Operation,
    OperationKind,
    OperationOutput,
    OperationState,
    OperationStateError,
    PrerequisiteError,
)
from crewcli.core.models.params import ParameterStore, ParameterStoreFrozen
from crewcli.core.models.receipt import Receipt

__all__ = [
    # field.py
    "ChoiceInput",
    # config.py
    "CliConfig",
    "FieldVariant",
    "FlowDefaults",
    "FreeFormInput",
    "InputField",
    # operation.py
    "Operation",
    "OperationKind",
    "OperationOutput",
    "OperationState",
    "OperationStateError",
    # params.py
    "ParameterStore",
    "ParameterStoreFrozen",
    "PrerequisiteError",
    # receipt.py
    "Receipt",
]
