"""
withserver configuration management (YAML layers + environment overrides).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml
from jsonschema import Draft202012Validator

from withserver.core.exceptions import ConfigError
from withserver.core.utils.merge import deep_merge as _deep_merge
from withserver.data import get_data_path, read_yaml as read_data_yaml

logger = logging.getLogger(__name__)

PROJECT_CONFIG_DIRNAME = ".withserver"
ENV_PREFIX = "WITHSERVER_"
SCHEMA_NAME = "config.schema.yaml"


def _iter_yaml_files(directory: Path) -> List[Path]:
    files = [p for p in directory.iterdir() if p.is_file() and p.suffix in {".yaml", ".yml"}]
    return sorted(files, key=lambda p: p.name)


class ConfigManager:
    """Load, merge, and validate withserver configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: WITHSERVER_<section>__<key>
    2. Project-local config: <repo>/.withserver/config.local/*.yaml (uncommitted)
    3. Project config: <repo>/.withserver/config/*.yaml (alphabetical order)
    4. Bundled defaults: withserver.data/config/*.yaml

    CLI flags are applied on top by the caller.
    """

    ARRAY_APPEND_MARKER = object()
    _NULL = object()

    def __init__(self, repo_root: Optional[Path] = None) -> None:
        self.repo_root = Path(repo_root or Path.cwd()).resolve()
        self.core_config_dir = get_data_path("config")
        project_dir = self.repo_root / PROJECT_CONFIG_DIRNAME
        self.project_config_dir = project_dir / "config"
        self.project_local_config_dir = project_dir / "config.local"

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        # Fail closed: configuration must never silently ignore invalid YAML.
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}", context={"path": str(path)}) from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Config file {path} must contain a mapping, got {type(data).__name__}",
                context={"path": str(path)},
            )
        return data

    def _load_directory(self, directory: Path, cfg: Dict[str, Any]) -> Dict[str, Any]:
        if not directory.is_dir():
            return cfg
        for path in _iter_yaml_files(directory):
            logger.debug("Loading config layer %s", path)
            cfg = _deep_merge(cfg, self.load_yaml(path))
        return cfg

    # ---------- environment overrides ----------

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            try:
                return int(v)
            except ValueError:
                return None
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            try:
                return float(s)
            except ValueError:
                return None
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except ValueError:
                return None
        return None

    def _as_null(self, v: str) -> Optional[Any]:
        return self._NULL if v.strip().lower() in {"null", "none", "~"} else None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json, self._as_null):
            result = caster(value)
            if result is self._NULL:
                return None
            if result is not None:
                return result
        return value.strip()

    def _parse_env_key(self, raw: str) -> List[Union[str, int, object]]:
        segs = raw.split("__")
        processed: List[Union[str, int, object]] = []
        for seg in segs:
            if seg == "":
                raise ConfigError(
                    f"Malformed {ENV_PREFIX}* key: empty segment in '{raw}'.",
                    context={"key": raw},
                )
            if seg.isdigit():
                processed.append(int(seg))
            elif seg.upper() == "APPEND":
                processed.append(self.ARRAY_APPEND_MARKER)
            else:
                processed.append(seg.lower())
        return processed

    def _iter_env_overrides(self) -> Iterator[Tuple[List[Union[str, int, object]], Any]]:
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX):
                continue
            raw = key[len(ENV_PREFIX):]
            if not raw:
                raise ConfigError(f"Malformed {ENV_PREFIX}* key")
            yield self._parse_env_key(raw), self._coerce_type(os.environ[key])

    def _set_nested(self, root: Dict[str, Any], path: List[Union[str, int, object]], value: Any) -> None:
        cur: Any = root
        for i, part in enumerate(path[:-1]):
            nxt = path[i + 1]
            if isinstance(part, int) or part is self.ARRAY_APPEND_MARKER:
                raise ConfigError("Invalid env override path: list index/APPEND may only appear at leaf")
            if not isinstance(cur, dict):
                raise ConfigError("Env override path traverses a non-mapping value")
            if part not in cur or cur[part] is None:
                cur[part] = [] if (isinstance(nxt, int) or nxt is self.ARRAY_APPEND_MARKER) else {}
            cur = cur[part]

        leaf = path[-1]
        if leaf is self.ARRAY_APPEND_MARKER:
            if not isinstance(cur, list):
                raise ConfigError("APPEND requires a list")
            cur.append(value)
        elif isinstance(leaf, int):
            if not isinstance(cur, list):
                raise ConfigError("Index assignment requires a list")
            while len(cur) <= leaf:
                cur.append(None)
            cur[leaf] = value
        else:
            if not isinstance(cur, dict):
                raise ConfigError("Key assignment requires a mapping")
            cur[leaf] = value

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> None:
        for path, typed_value in self._iter_env_overrides():
            logger.debug("Applying env override %s", path)
            self._set_nested(cfg, path, typed_value)

    # ---------- validation ----------

    def validate(self, cfg: Dict[str, Any]) -> None:
        schema = read_data_yaml("schemas", SCHEMA_NAME)
        validator = Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(cfg), key=lambda e: [str(p) for p in e.path])
        if not errors:
            return
        messages = []
        for err in errors:
            where = ".".join(str(p) for p in err.path) or "<root>"
            messages.append(f"{where}: {err.message}")
        raise ConfigError(
            "Invalid configuration: " + "; ".join(messages),
            context={"errors": messages},
        )

    def load_config(
        self,
        *,
        overrides: Optional[Dict[str, Any]] = None,
        validate: bool = True,
    ) -> Dict[str, Any]:
        """Load and merge all configuration layers.

        Args:
            overrides: Highest-priority values (typically from CLI flags)
            validate: Validate the merged result against the bundled schema

        Returns:
            Merged configuration dictionary

        Raises:
            ConfigError: On unreadable YAML, malformed env keys or schema violations
        """
        cfg: Dict[str, Any] = {}
        cfg = self._load_directory(self.core_config_dir, cfg)
        cfg = self._load_directory(self.project_config_dir, cfg)
        cfg = self._load_directory(self.project_local_config_dir, cfg)
        self.apply_env_overrides(cfg)
        if overrides:
            cfg = _deep_merge(cfg, overrides)
        if validate:
            self.validate(cfg)
        return cfg


__all__ = ["ConfigManager", "PROJECT_CONFIG_DIRNAME", "ENV_PREFIX"]
