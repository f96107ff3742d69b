"""Control catalog loading and grouping.

A catalog is an ordered, read-only list of controls. It comes either from
the catalog service (see services.catalog) or from a YAML file shaped as a
flat ``controls:`` list or as ``sections:`` each holding ``controls:``.
"""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path
from typing import Iterable, Iterator, Optional

import pydantic
import yaml

from ..models.control import Control
from .errors import CatalogUnavailable

logger = logging.getLogger(__name__)


class ControlCatalog:
    """Ordered controls, immutable for the duration of a marking session."""

    def __init__(self, controls: Iterable[Control] = ()):
        self._controls: tuple[Control, ...] = tuple(controls)
        self._by_id: dict[str, Control] = {}
        for control in self._controls:
            if control.id in self._by_id:
                raise CatalogUnavailable(f"Duplicate control id in catalog: {control.id}")
            self._by_id[control.id] = control

    @property
    def ids(self) -> list[str]:
        return [c.id for c in self._controls]

    @property
    def controls(self) -> tuple[Control, ...]:
        return self._controls

    def get(self, control_id: str) -> Optional[Control]:
        return self._by_id.get(control_id)

    def index_of(self, control_id: str) -> int:
        return self.ids.index(control_id)

    def sections(self) -> dict[str, list[Control]]:
        return group_by_section(self._controls)

    def __len__(self) -> int:
        return len(self._controls)

    def __iter__(self) -> Iterator[Control]:
        return iter(self._controls)

    def __contains__(self, control_id: object) -> bool:
        return control_id in self._by_id

    def __bool__(self) -> bool:
        return bool(self._controls)


def group_by_section(controls: Iterable[Control]) -> dict[str, list[Control]]:
    """Group controls by section, keeping first-seen section order."""
    groups: dict[str, list[Control]] = {}
    for control in controls:
        groups.setdefault(control.section, []).append(control)
    return groups


def parse_controls(data: object) -> list[Control]:
    """Build controls from decoded catalog data.

    Accepts a list of control records, ``{"controls": [...]}``, or
    ``{"sections": [{"name": ..., "controls": [...]}]}`` where controls
    inherit their section name.
    """
    if not isinstance(data, (list, dict)):
        raise CatalogUnavailable("Catalog data is not a list of controls")

    controls: list[Control] = []
    try:
        records: list[dict] = []
        if isinstance(data, list):
            records = list(data)
        else:
            records.extend(data.get("controls") or [])
            for section in data.get("sections") or []:
                name = section.get("name") or section.get("id") or ""
                for record in section.get("controls") or []:
                    records.append({"section": name, **record})

        for record in records:
            record = dict(record)
            # Catalog service records key the visible id as controlId.
            if "controlId" in record and "id" not in record:
                record["id"] = record.pop("controlId")
            controls.append(Control.model_validate(record))
    except (pydantic.ValidationError, TypeError, AttributeError) as e:
        raise CatalogUnavailable(f"Malformed control record: {e}") from e
    return controls


def load_catalog_file(path: Path) -> ControlCatalog:
    """Load a catalog from a YAML (or JSON) file."""
    if not path.exists():
        raise CatalogUnavailable(f"Catalog file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8-sig"))
    except (OSError, yaml.YAMLError) as e:
        raise CatalogUnavailable(f"Could not read catalog file {path.name}: {e}") from e
    catalog = ControlCatalog(parse_controls(data or []))
    logger.debug("Loaded %d controls from %s", len(catalog), path)
    return catalog


def get_builtin_catalogs() -> list[str]:
    """Names of the catalogs packaged with controlmark."""
    data_pkg = resources.files("controlmark.data.catalogs")
    return sorted(
        entry.name.removesuffix(".yaml")
        for entry in data_pkg.iterdir()
        if entry.name.endswith(".yaml")
    )


def load_builtin_catalog(name: str) -> ControlCatalog:
    """Load a packaged catalog by name (file stem)."""
    entry = resources.files("controlmark.data.catalogs") / f"{name}.yaml"
    if not entry.is_file():
        raise CatalogUnavailable(f"Unknown built-in catalog: {name}")
    data = yaml.safe_load(entry.read_text(encoding="utf-8"))
    return ControlCatalog(parse_controls(data or []))
