"""
Provisioner registration, matching and dispatch.

Orchestration lives in ``scorekit.provisioners.provisioning`` and is not
re-exported here, since the state models depend on this package.
"""

from scorekit.provisioners.dispatch import CommandDispatch, HttpDispatch, StaticDispatch
from scorekit.provisioners.models import Dispatch, Provisioner
from scorekit.provisioners.patch import merge_patch
from scorekit.provisioners.protocol import (
    DEPROVISION,
    PROVISION,
    ProvisionerInputs,
    ProvisionerOutputs,
    decode_outputs,
)
from scorekit.provisioners.registry import ProvisionerRegistry

__all__ = [
    "CommandDispatch",
    "DEPROVISION",
    "Dispatch",
    "HttpDispatch",
    "PROVISION",
    "Provisioner",
    "ProvisionerInputs",
    "ProvisionerOutputs",
    "ProvisionerRegistry",
    "StaticDispatch",
    "decode_outputs",
    "merge_patch",
]
