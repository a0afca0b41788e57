"""
Exam blueprint and objective catalogue.

Each supported core ships a YAML file under ``catalogue/data`` holding the
domain weights and the objective list (id -> title + bullets). Files are
validated against a structured OmegaConf schema and exposed through
``ObjectiveCatalogue``.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from omegaconf import MISSING, OmegaConf
from pydantic import Field

from exam_service.core.data_models import (
    CoreId,
    DomainBlueprint,
    FrozenCamelModel,
)
from exam_service.core.exceptions import UnknownCoreError

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"


# --- YAML schema ---


@dataclass
class DomainEntry:
    domain_number: str = MISSING
    domain_label: str = MISSING
    weight: int = MISSING


@dataclass
class ObjectiveEntry:
    title: str = MISSING
    bullets: list[str] = field(default_factory=list)


@dataclass
class CoreCatalogueConfig:
    """Schema of one ``<core>.yaml`` file.

    Attributes:
        core: Exam core id, e.g. "220-1201".
        domains: Domain weights in blueprint order.
        objectives: Objective id -> title and bullets, in catalogue order.
    """

    core: str = MISSING
    domains: list[DomainEntry] = MISSING
    objectives: dict[str, ObjectiveEntry] = MISSING


def load_core_config(yaml_path: Path) -> CoreCatalogueConfig:
    """Load and validate a core catalogue from YAML.

    Args:
        yaml_path: Path to the YAML file.

    Returns:
        Validated CoreCatalogueConfig.

    Raises:
        FileNotFoundError: If yaml_path doesn't exist.
    """
    if not yaml_path.exists():
        raise FileNotFoundError(f"Catalogue file not found: {yaml_path}")

    schema = OmegaConf.structured(CoreCatalogueConfig)
    config = OmegaConf.merge(schema, OmegaConf.load(yaml_path))

    result = OmegaConf.to_object(config)
    assert isinstance(result, CoreCatalogueConfig)
    return result


def coerce_core(core: CoreId | str) -> CoreId:
    try:
        return CoreId(core)
    except ValueError:
        raise UnknownCoreError(str(core)) from None


# --- Catalogue ---


class ObjectiveMeta(FrozenCamelModel):
    objective_id: str
    title: str
    bullets: list[str] = Field(default_factory=list)

    @property
    def domain_major(self) -> str:
        return self.objective_id.split(".")[0]


class ObjectiveCatalogue:
    """Read-only lookup of blueprints and objectives per exam core."""

    def __init__(
        self,
        blueprints: dict[CoreId, list[DomainBlueprint]],
        objectives: dict[CoreId, dict[str, ObjectiveMeta]],
    ) -> None:
        self._blueprints = blueprints
        self._objectives = objectives

    @classmethod
    def from_configs(
        cls, configs: list[CoreCatalogueConfig]
    ) -> "ObjectiveCatalogue":
        blueprints: dict[CoreId, list[DomainBlueprint]] = {}
        objectives: dict[CoreId, dict[str, ObjectiveMeta]] = {}
        for config in configs:
            core = coerce_core(config.core)
            blueprints[core] = [
                DomainBlueprint(
                    domain_number=d.domain_number,
                    domain_label=d.domain_label,
                    weight=d.weight,
                )
                for d in config.domains
            ]
            objectives[core] = {
                objective_id: ObjectiveMeta(
                    objective_id=objective_id,
                    title=entry.title,
                    bullets=list(entry.bullets),
                )
                for objective_id, entry in config.objectives.items()
            }
        return cls(blueprints, objectives)

    @classmethod
    def from_directory(cls, data_dir: Path) -> "ObjectiveCatalogue":
        paths = sorted(data_dir.glob("*.yaml"))
        logger.debug(f"Loading {len(paths)} catalogue files from {data_dir}")
        return cls.from_configs([load_core_config(p) for p in paths])

    @property
    def cores(self) -> list[CoreId]:
        return list(self._blueprints)

    def _core_objectives(self, core: CoreId | str) -> dict[str, ObjectiveMeta]:
        key = coerce_core(core)
        if key not in self._objectives:
            raise UnknownCoreError(str(core))
        return self._objectives[key]

    def blueprint(self, core: CoreId | str) -> list[DomainBlueprint]:
        key = coerce_core(core)
        if key not in self._blueprints:
            raise UnknownCoreError(str(core))
        return list(self._blueprints[key])

    def get_objective_meta(
        self, core: CoreId | str, objective_id: str
    ) -> ObjectiveMeta | None:
        return self._core_objectives(core).get(objective_id)

    def list_objective_ids(self, core: CoreId | str) -> list[str]:
        return list(self._core_objectives(core))

    def list_objectives_by_domain(
        self, core: CoreId | str, domain_number: str
    ) -> list[str]:
        """Objective ids whose major number matches the domain's, e.g. "2.x" for "2.0"."""
        major = domain_number.split(".")[0]
        return [
            objective_id
            for objective_id, meta in self._core_objectives(core).items()
            if meta.domain_major == major
        ]

    def bullet_pool(self, core: CoreId | str) -> list[str]:
        """Every bullet of the core in catalogue order, duplicates included."""
        return [
            bullet
            for meta in self._core_objectives(core).values()
            for bullet in meta.bullets
        ]


@lru_cache(maxsize=1)
def get_default_catalogue() -> ObjectiveCatalogue:
    return ObjectiveCatalogue.from_directory(DATA_DIR)
