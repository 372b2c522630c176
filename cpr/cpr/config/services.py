"""Service table: maps template prefixes to git URL patterns."""

from __future__ import annotations

import logging
import os
import re
import tempfile
import tomllib
from pathlib import Path

import toml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..core.errors import ConfigError, UnknownServiceError
from ..core.models import TemplateRef

logger = logging.getLogger(__name__)

REPO_PLACEHOLDER = re.compile(r"\{\{\s*repo\s*\}\}")
DEFAULT_SERVICE = "gh"
DEFAULT_SERVICE_URL = "https://github.com/{{ repo }}.git"


class BaseURL(BaseModel):
    url: str = Field(..., description="URL pattern with a single {{ repo }} placeholder")

    @field_validator("url")
    @classmethod
    def _single_placeholder(cls, value: str) -> str:
        count = len(REPO_PLACEHOLDER.findall(value))
        if count != 1:
            raise ValueError(
                f"URL pattern {value!r} must contain exactly one {{{{ repo }}}} placeholder, found {count}"
            )
        return value


class ServiceConfig(BaseModel):
    """Process-wide service table, loaded once and passed around explicitly."""

    services: dict[str, BaseURL] = Field(default_factory=dict)
    default_service: str = DEFAULT_SERVICE

    @model_validator(mode="after")
    def _default_is_configured(self) -> "ServiceConfig":
        if self.default_service not in self.services:
            raise ValueError(
                f"default_service {self.default_service!r} is not a configured service"
            )
        return self

    @classmethod
    def default(cls) -> "ServiceConfig":
        return cls(
            services={DEFAULT_SERVICE: BaseURL(url=DEFAULT_SERVICE_URL)},
            default_service=DEFAULT_SERVICE,
        )

    def add_service(self, prefix: str, url: str) -> "ServiceConfig":
        prefix = _validate_prefix(prefix)
        try:
            base_url = BaseURL(url=url)
        except ValidationError as exc:
            raise ConfigError(None, _first_error(exc)) from exc
        services = dict(self.services)
        services[prefix] = base_url
        return self.model_copy(update={"services": services})

    def remove_service(self, prefix: str) -> "ServiceConfig":
        if prefix not in self.services:
            raise UnknownServiceError(prefix)
        if prefix == self.default_service:
            raise ConfigError(
                None, f"cannot remove {prefix!r} while it is the default service"
            )
        services = {k: v for k, v in self.services.items() if k != prefix}
        return self.model_copy(update={"services": services})

    def set_default_service(self, prefix: str) -> "ServiceConfig":
        if prefix not in self.services:
            raise UnknownServiceError(prefix)
        return self.model_copy(update={"default_service": prefix})


def _validate_prefix(prefix: str) -> str:
    prefix = prefix.strip()
    if not prefix or ":" in prefix or "/" in prefix:
        raise ConfigError(None, f"invalid service prefix {prefix!r}")
    return prefix


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def load_config(path: Path) -> ServiceConfig:
    logger.debug("reading config from file: %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(path, f"cannot read file: {exc}") from exc
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(path, f"malformed TOML: {exc}") from exc
    try:
        return ServiceConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(path, _first_error(exc)) from exc


def write_config(path: Path, config: ServiceConfig) -> None:
    payload = toml.dumps(config.model_dump(mode="json"))
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f"{path.name}.")
    except OSError as exc:
        raise ConfigError(path, f"cannot write file: {exc}") from exc
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        Path(tmp_name).replace(path)
    except OSError as exc:
        raise ConfigError(path, f"cannot write file: {exc}") from exc
    finally:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)


def init_config(path: Path) -> ServiceConfig:
    """Write the default service table to ``path`` and return it."""
    config = ServiceConfig.default()
    logger.debug("writing default config to file: %s", path)
    write_config(path, config)
    return config


def load_or_init_config(path: Path) -> tuple[ServiceConfig, bool]:
    """Load the config at ``path``, creating the default one first if missing.

    Returns the config and whether it was freshly created.
    """
    if not path.exists():
        return init_config(path), True
    return load_config(path), False


def parse_template_ref(text: str, default_service: str) -> TemplateRef:
    """Parse ``prefix:owner/name``; a missing prefix falls back to ``default_service``."""
    raw = text.strip()
    prefix, sep, repo_path = raw.partition(":")
    if not sep:
        prefix, repo_path = default_service, raw
    repo_path = repo_path.strip().strip("/")
    if not repo_path:
        raise ValueError(f"template reference {text!r} has an empty repository path")
    return TemplateRef(prefix=prefix.strip() or default_service, repo_path=repo_path)


def local_template_path(text: str) -> Path | None:
    """Return the directory ``text`` points at when it names a local template."""
    raw = text.strip()
    if raw.startswith("file://"):
        raw = raw[len("file://") :]
    elif not (
        raw.startswith(("/", "./", "../", "~")) or raw in (".", "..")
    ) and not Path(raw).is_dir():
        return None
    path = Path(raw).expanduser()
    return path.resolve() if path.is_dir() else None


def resolve(ref: TemplateRef, config: ServiceConfig) -> str:
    """Return the clone URL for ``ref``."""
    logger.debug("querying config for `prefix:path` -> %s:%s", ref.prefix, ref.repo_path)
    base_url = config.services.get(ref.prefix)
    if base_url is None:
        raise UnknownServiceError(ref.prefix)
    logger.debug("using base URL: %s", base_url.url)
    return REPO_PLACEHOLDER.sub(lambda _: ref.repo_path, base_url.url, count=1)
