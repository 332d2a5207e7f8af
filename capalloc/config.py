from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineSettings:
    """Numeric defaults the runner passes explicitly into engine calls."""

    discount_rate: float = 0.10
    finance_rate: float = 0.10
    reinvest_rate: float = 0.10
    iterations: int = 1000
    seed: Optional[int] = None
    yield_every: int = 10
    cost_spread: float = 0.20
    benefit_spread: float = 0.15

    @classmethod
    def from_mapping(cls, d: Dict[str, Any]) -> "EngineSettings":
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in d or d[f.name] is None:
                continue
            if f.name in ("iterations", "yield_every", "seed"):
                kwargs[f.name] = int(d[f.name])
            else:
                kwargs[f.name] = float(d[f.name])
        return cls(**kwargs)


_SETTING_NAMES = {f.name for f in fields(EngineSettings)}


def _coerce_scalar(value: str) -> Any:
    low = value.lower()
    if low in ("true", "yes", "on"):
        return True
    if low in ("false", "no", "off"):
        return False
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            pass
    return value


def _parse_yaml_fallback(text: str) -> Dict[str, Any]:
    """
    Last-resort reader for files PyYAML rejects: keeps unindented
    `key: scalar` lines only. Nested blocks and lists are dropped.
    """
    data: Dict[str, Any] = {}
    for raw in text.splitlines():
        if not raw or raw[0] in " \t#-":
            continue
        key, sep, value = raw.partition(":")
        if not sep:
            continue
        value = value.split(" #", 1)[0].strip().strip("'\"")
        if value:
            data[key.strip()] = _coerce_scalar(value)
    return data


def _split_settings(cfg: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Settings may sit under a `settings:` group or at top level; the group wins
    on collisions. Everything else is portfolio input.
    """
    inputs: Dict[str, Any] = {}
    settings: Dict[str, Any] = {}
    for k, v in cfg.items():
        if k == "settings" and isinstance(v, dict):
            continue
        if k in _SETTING_NAMES:
            settings[k] = v
        else:
            inputs[k] = v
    group = cfg.get("settings")
    if isinstance(group, dict):
        settings.update({k: v for k, v in group.items() if k in _SETTING_NAMES})
    return settings, inputs


def load_model_config(
    source: str | os.PathLike | io.StringIO,
) -> Tuple[EngineSettings, Dict[str, Any]]:
    """
    Read a portfolio document (path or text stream) into (settings, inputs).
    `inputs` carries budget/priorities/projects/scenarios/locked/excluded as
    plain records; a non-mapping document yields defaults and no inputs.
    """
    if hasattr(source, "read"):
        text = str(source.read())
    else:
        text = Path(source).read_text(encoding="utf-8")

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        logger.warning("portfolio YAML did not parse (%s); reading top-level scalars only", exc)
        loaded = _parse_yaml_fallback(text)
    cfg = loaded if isinstance(loaded, dict) else {}

    settings, inputs = _split_settings(cfg)
    return EngineSettings.from_mapping(settings), inputs


__all__ = ["EngineSettings", "load_model_config"]
