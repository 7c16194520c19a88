"""Tenant Matching Configuration value type.

The configuration is owned and validated by the tenant administration
collaborator. The engine receives one immutable, fully-defaulted snapshot
per import run (or None, which selects legacy behaviour).
"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, Literal, Mapping, Optional

_PHASE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    extra="ignore",
)


class Phase1Config(BaseModel):
    """Phase 1: matching strictness for lines that found a candidate."""

    model_config = _PHASE_CONFIG

    enabled: bool = False
    confidence_threshold: float = Field(default=0.7, ge=0.5, le=1.0)
    auto_approve_above: float = Field(default=0.9, ge=0.7, le=1.0)
    require_manual_review: bool = True


class Phase2Config(BaseModel):
    """Phase 2: handling of lines without any candidate."""

    model_config = _PHASE_CONFIG

    enabled: bool = False
    require_approval_for_new: bool = True


class Phase3Config(BaseModel):
    """Phase 3: analytics only, no effect on matching decisions."""

    model_config = _PHASE_CONFIG

    enabled: bool = False
    analytics_level: Literal["basic", "advanced"] = "basic"


class TenantMatchingConfig(BaseModel):
    """Per-tenant matching policy snapshot.

    Phase dependency rule: phase 2 requires phase 1, phase 3 requires
    phase 2. A snapshot violating it cannot be constructed.
    """

    model_config = _PHASE_CONFIG

    phase1: Phase1Config = Field(default_factory=Phase1Config)
    phase2: Phase2Config = Field(default_factory=Phase2Config)
    phase3: Phase3Config = Field(default_factory=Phase3Config)

    @model_validator(mode="after")
    def check_phase_dependencies(self) -> "TenantMatchingConfig":
        if self.phase2.enabled and not self.phase1.enabled:
            raise ValueError("phase2 can only be enabled while phase1 is enabled")
        if self.phase3.enabled and not self.phase2.enabled:
            raise ValueError("phase3 can only be enabled while phase2 is enabled")
        return self

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> Optional["TenantMatchingConfig"]:
        """Build a snapshot from the collaborator's raw document.

        Accepts camelCase or snake_case keys; missing keys take defaults and
        unknown keys (globalSettings, ...) are ignored.

        Returns:
            The snapshot, or None when the tenant has no configuration
        """
        if raw is None:
            return None
        return cls.model_validate(dict(raw))

    def is_phase_enabled(self, phase: Literal["phase1", "phase2", "phase3"]) -> bool:
        return getattr(self, phase).enabled
