from __future__ import annotations

from collections.abc import Iterable

from ..errors import ValidationError
from ..models import (
    RESPONSE_TYPE_LABELS,
    GateResult,
    PCIInstance,
    PCIStatus,
    RiskResponse,
    RiskResponseType,
)


def check_activation_gate(response: RiskResponse | None, pci_instances: Iterable[PCIInstance]) -> GateResult:
    """Decide whether a risk may move from draft to active.

    Only attestation completeness matters here; a fully attested control with a poor
    score still satisfies the gate.
    """
    live = [p for p in pci_instances if p.status is not PCIStatus.RETIRED]
    attested = [p for p in live if p.is_fully_attested]

    if response is None:
        return GateResult(
            can_activate=False,
            has_response=False,
            response_type=None,
            pci_count=len(live),
            attested_pci_count=len(attested),
            validation_message=(
                "Risk response must be set before activation. Select a response "
                "(Avoid, Reduce Likelihood, Reduce Impact, Transfer/Share, or Accept)."
            ),
        )

    label = RESPONSE_TYPE_LABELS[response.response_type]
    if response.response_type is RiskResponseType.ACCEPT:
        can_activate = True
        message = 'Risk can be activated. Response is "Accept" - no controls required.'
    elif attested:
        can_activate = True
        message = (
            f'Risk can be activated. Response is "{label}" with {len(attested)} fully attested '
            f"control(s) of {len(live)} defined."
        )
    elif live:
        can_activate = False
        message = (
            f'Cannot activate risk. Response is "{label}" and none of its {len(live)} control(s) '
            "has every secondary control attested."
        )
    else:
        can_activate = False
        message = (
            f'Cannot activate risk. Response is "{label}" which requires at least one control '
            "(PCI instance). Add a control from the library."
        )

    return GateResult(
        can_activate=can_activate,
        has_response=True,
        response_type=response.response_type,
        pci_count=len(live),
        attested_pci_count=len(attested),
        validation_message=message,
    )


def check_instance_activation(instance: PCIInstance) -> None:
    if instance.status is not PCIStatus.DRAFT:
        raise ValidationError(
            f"Only draft controls can be activated (current status: {instance.status.value}).",
            code="invalid_transition",
            details={"pci_instance_id": instance.id, "status": instance.status.value},
        )
    if not instance.is_fully_attested:
        raise ValidationError(
            f"All secondary controls must be attested before activation "
            f"({instance.attested_count}/{len(instance.controls)} attested).",
            code="attestation_incomplete",
            details={
                "pci_instance_id": instance.id,
                "attested": instance.attested_count,
                "total": len(instance.controls),
            },
        )


def check_instance_retirement(instance: PCIInstance) -> None:
    if instance.status is PCIStatus.RETIRED:
        raise ValidationError(
            "Control is already retired.",
            code="invalid_transition",
            details={"pci_instance_id": instance.id},
        )
