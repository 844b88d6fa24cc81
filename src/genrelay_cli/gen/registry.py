from __future__ import annotations

import threading
from pathlib import Path
from typing import Mapping, Optional

from .config import ConfigError, GenConfig, find_config, load_config
from .credentials import CredentialResolver, EnvSecretSource, SecretSource
from .provider import ProviderClient
from .providers.placeholder import PlaceholderClient
from .providers.replicate import ReplicateClient
from .providers.runpod import RunpodClient
from .types import ProviderDescriptor


class ProviderRegistry:
    def __init__(
        self,
        config: GenConfig,
        environ: Optional[Mapping[str, str]] = None,
        secrets: Optional[SecretSource] = None,
        clients: Optional[Mapping[str, ProviderClient]] = None,
    ):
        self._config = config
        self._resolver = CredentialResolver(config, environ)
        self._secrets = secrets or EnvSecretSource(environ)
        self._clients: dict[str, ProviderClient] = dict(clients or {})
        self._lock = threading.Lock()

    @classmethod
    def from_config_file(cls, config_path: Optional[Path] = None) -> "ProviderRegistry":
        if config_path is None:
            config_path = find_config()
        config = load_config(config_path)
        return cls(config)

    @property
    def config(self) -> GenConfig:
        return self._config

    @property
    def resolver(self) -> CredentialResolver:
        return self._resolver

    def descriptor(self, provider_id: str) -> ProviderDescriptor:
        return self._resolver.get(provider_id)

    def get_client(self, family: str) -> ProviderClient:
        client = self._clients.get(family)
        if client is not None:
            return client

        with self._lock:
            if family not in self._clients:
                self._clients[family] = self._instantiate_client(family)
            return self._clients[family]

    def client_for(self, descriptor: ProviderDescriptor) -> ProviderClient:
        return self.get_client(descriptor.family)

    def close(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()

    def _instantiate_client(self, family: str) -> ProviderClient:
        timeout = self._config.request_timeout_sec
        providers = self._config.providers

        if family == "runpod":
            if providers.runpod is None:
                raise ConfigError("Provider 'runpod' is not configured. Add a [providers.runpod] section.")
            return RunpodClient(
                self._secrets,
                api_key_env=providers.runpod.api_key_env,
                base_url=providers.runpod.base_url,
                timeout_sec=timeout,
            )

        if family == "replicate":
            if providers.replicate is None:
                raise ConfigError(
                    "Provider 'replicate' is not configured. Add a [providers.replicate] section."
                )
            return ReplicateClient(
                self._secrets,
                api_token_env=providers.replicate.api_token_env,
                base_url=providers.replicate.base_url,
                timeout_sec=timeout,
            )

        if family == "placeholder":
            return PlaceholderClient(providers.placeholder)

        raise ConfigError(
            f"Unknown provider family: '{family}'. Available families: ['placeholder', 'replicate', 'runpod']"
        )
