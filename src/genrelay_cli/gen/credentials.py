"""Credential and configuration resolution.

Decides, per provider/model combination, whether every identifier needed to
call it is present. Descriptors are computed once from the configuration and
an environment snapshot; API secrets themselves are looked up only when a
client is about to make a call.
"""
from __future__ import annotations

import logging
import os
from typing import Mapping, Optional, Protocol

from .catalog import CATALOG, ModelEntry
from .config import ConfigError, GenConfig
from .types import ProviderDescriptor

logger = logging.getLogger(__name__)


class SecretSource(Protocol):
    def get(self, name: str) -> Optional[str]: ...


class EnvSecretSource:
    """Reads secrets from the process environment on every lookup."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    def get(self, name: str) -> Optional[str]:
        environ = os.environ if self._environ is None else self._environ
        value = environ.get(name, "")
        return value.strip() or None


class CredentialResolver:
    def __init__(self, config: GenConfig, environ: Optional[Mapping[str, str]] = None):
        self._config = config
        snapshot = dict(os.environ if environ is None else environ)
        self._descriptors: dict[str, ProviderDescriptor] = {
            entry.provider_id: self._describe(entry, snapshot) for entry in CATALOG
        }

    @property
    def config(self) -> GenConfig:
        return self._config

    def is_configured(self, provider_id: str) -> bool:
        descriptor = self._descriptors.get(provider_id)
        return descriptor is not None and descriptor.is_configured

    def list_configured(self, kind: Optional[str] = None) -> list[ProviderDescriptor]:
        return [
            d
            for d in self._descriptors.values()
            if d.is_configured and (kind is None or d.supports(kind))
        ]

    def get(self, provider_id: str) -> ProviderDescriptor:
        try:
            return self._descriptors[provider_id]
        except KeyError:
            raise ConfigError(
                f"Unknown provider: '{provider_id}'. Available providers: {sorted(self._descriptors)}"
            ) from None

    def all_descriptors(self) -> list[ProviderDescriptor]:
        return list(self._descriptors.values())

    def _describe(self, entry: ModelEntry, env: Mapping[str, str]) -> ProviderDescriptor:
        endpoint = ""
        configured = False

        if entry.family == "runpod":
            cfg = self._config.providers.runpod
            if cfg is not None:
                endpoint = cfg.endpoint_ids.get(entry.model, "").strip()
                if not endpoint and entry.model in cfg.endpoints:
                    endpoint = env.get(cfg.endpoints[entry.model], "").strip()
                has_key = bool(env.get(cfg.api_key_env, "").strip())
                configured = has_key and bool(endpoint)
                if has_key and not endpoint:
                    logger.debug(f"{entry.provider_id}: API key present but no endpoint id")
        elif entry.family == "replicate":
            cfg = self._config.providers.replicate
            endpoint = entry.reference
            if cfg is not None:
                enabled = cfg.models is None or entry.model in cfg.models
                configured = enabled and bool(env.get(cfg.api_token_env, "").strip())
        elif entry.family == "placeholder":
            configured = self._config.providers.placeholder is not None

        return ProviderDescriptor(
            provider_id=entry.provider_id,
            family=entry.family,
            model=entry.model,
            media_kinds=entry.media_kinds,
            transport=entry.transport,
            is_configured=configured,
            endpoint_identifier=endpoint,
            requires_source_image=entry.requires_source_image,
        )
