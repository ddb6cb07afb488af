"""
Requirements Validator - decides whether a request can be served.

Two checks:
- validate_requirements() runs BEFORE any network call and rejects requests
  that no declared support could satisfy.
- meets_requirements() runs on each received response.
"""

import logging
from typing import Any, Iterable, Mapping, Optional

from source_core.chains import ChainId
from source_core.exceptions import UnmetRequirementsError, UnsupportedChainError
from source_core.models import (
    FieldsRequirements,
    SupportByChain,
    SupportLevel,
    SupportRecord,
    support_level,
)


logger = logging.getLogger(__name__)


def supported_chains(support: Mapping[ChainId, Any]) -> list[ChainId]:
    """Chains declared in a per-chain support map."""
    return [int(chain_id) for chain_id in support.keys()]


def combine_support(supports: Iterable[Mapping[ChainId, SupportRecord]]) -> SupportByChain:
    """
    Union of several sources' declared support.

    For each chain and field, the strongest declared level wins
    (PRESENT > OPTIONAL > ABSENT).
    """
    result: SupportByChain = {}
    for support in supports:
        for chain_id, record in support.items():
            combined = result.setdefault(int(chain_id), {})
            for field_name, level in record.items():
                current = combined.get(field_name, SupportLevel.ABSENT)
                if level.rank > current.rank:
                    combined[field_name] = level
    return result


def combine_capabilities(supports: Iterable[Mapping[ChainId, Iterable[Any]]]) -> dict[ChainId, frozenset]:
    """Union of per-chain capability sets (queries, clients)."""
    result: dict[ChainId, set] = {}
    for support in supports:
        for chain_id, capabilities in support.items():
            result.setdefault(int(chain_id), set()).update(capabilities)
    return {chain_id: frozenset(capabilities) for chain_id, capabilities in result.items()}


def unmet_fields(record: SupportRecord, requirements: Optional[FieldsRequirements]) -> list[Any]:
    """Required fields that a support record declares ABSENT."""
    if requirements is None:
        return []
    return [
        name for name in requirements.required_fields()
        if support_level(record, name) == SupportLevel.ABSENT
    ]


def can_support(record: SupportRecord, requirements: Optional[FieldsRequirements]) -> bool:
    return not unmet_fields(record, requirements)


def validate_requirements(
    support: Mapping[ChainId, SupportRecord],
    chains: Iterable[ChainId],
    requirements: Optional[FieldsRequirements] = None,
) -> None:
    """
    Fail fast if the requested chains cannot be served.

    Args:
        support: Declared support per chain (one source or a union)
        chains: Chains the caller is asking about
        requirements: Caller requirements (None = nothing required)

    Raises:
        UnsupportedChainError: A chain is not declared at all
        UnmetRequirementsError: A required field is ABSENT on a chain
    """
    for chain_id in chains:
        record = support.get(chain_id)
        if record is None:
            raise UnsupportedChainError(
                chain_id,
                supported_chains=supported_chains(support),
            )
        missing = unmet_fields(record, requirements)
        if missing:
            names = [getattr(name, "value", str(name)) for name in missing]
            raise UnmetRequirementsError(
                f"Chain with id {chain_id} cannot support the given requirements "
                f"(missing: {', '.join(names)})",
                chain_id=chain_id,
                fields=names,
            )


def meets_requirements(
    response: Optional[Mapping[Any, Any]],
    requirements: Optional[FieldsRequirements] = None,
) -> bool:
    """
    A response meets requirements iff every required field is present and
    not None. Optional fields may be missing.
    """
    if response is None:
        return False
    if requirements is None:
        return True
    return all(response.get(name) is not None for name in requirements.required_fields())


def nested_responses_meet_requirements(
    response: Mapping[ChainId, Mapping[Any, Mapping[Any, Any]]],
    requirements: Optional[FieldsRequirements] = None,
) -> bool:
    """Apply meets_requirements() to every item of a chain -> key -> fields map."""
    return all(
        meets_requirements(item, requirements)
        for by_key in response.values()
        for item in by_key.values()
    )
