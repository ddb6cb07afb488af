"""
Support and Requirements Models.

A source declares, per chain, how well it can fill each field of a value
shape (``SupportRecord``). Callers declare which fields they cannot live
without (``FieldsRequirements``). Fields are always members of a per-domain
enum (speed tiers, metadata fields), never free-form strings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Mapping, Optional, TypeVar

from source_core.chains import ChainId


F = TypeVar("F", bound=Enum)


class SupportLevel(Enum):
    """How reliably a source fills in a field."""
    PRESENT = "present"
    OPTIONAL = "optional"
    ABSENT = "absent"

    @property
    def rank(self) -> int:
        return _SUPPORT_RANK[self]


_SUPPORT_RANK = {
    SupportLevel.ABSENT: 0,
    SupportLevel.OPTIONAL: 1,
    SupportLevel.PRESENT: 2,
}


class FieldRequirement(Enum):
    """What the caller expects of a field in the response."""
    REQUIRED = "required"
    OPTIONAL = "optional"


# A field missing from a record is ABSENT
SupportRecord = dict[Enum, SupportLevel]
SupportByChain = dict[ChainId, SupportRecord]


def support_level(record: Mapping[Any, SupportLevel], field_name: Any) -> SupportLevel:
    """Level declared for a field, ABSENT if the record does not mention it."""
    return record.get(field_name, SupportLevel.ABSENT)


@dataclass(frozen=True)
class FieldsRequirements(Generic[F]):
    """
    Caller-supplied requirements for a response.

    Fields not mentioned are treated as optional. An empty instance is the
    weakest policy: any populated response is acceptable.
    """
    requirements: dict = field(default_factory=dict)

    def required_fields(self) -> list[F]:
        """Fields marked as required, in declaration order."""
        return [
            name for name, requirement in self.requirements.items()
            if requirement == FieldRequirement.REQUIRED
        ]

    def is_empty(self) -> bool:
        return not self.required_fields()

    @classmethod
    def parse(
        cls,
        field_type: type,
        raw: Optional[Mapping[str, str]],
    ) -> "FieldsRequirements":
        """
        Build requirements from plain strings.

        Args:
            field_type: Field enum of the domain (e.g. SpeedTier)
            raw: Mapping such as ``{"fast": "required"}``

        Raises:
            ValueError: On unknown field names or requirement values
        """
        if not raw:
            return cls()
        return cls({
            field_type(name): FieldRequirement(requirement)
            for name, requirement in raw.items()
        })

    def to_dict(self) -> dict[str, str]:
        return {
            getattr(name, "value", name): requirement.value
            for name, requirement in self.requirements.items()
        }

