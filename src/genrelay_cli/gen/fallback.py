from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from .catalog import CATALOG, DEFAULT_ORDER
from .credentials import CredentialResolver
from .errors import ADVANCE_ELIGIBLE, OrchestrationError
from .types import GenerationRequest, ProviderDescriptor

logger = logging.getLogger(__name__)


def should_advance(failure: OrchestrationError) -> bool:
    return isinstance(failure, ADVANCE_ELIGIBLE)


class FallbackChain:
    """Candidate cursor for one request. ``position`` is the attempt index."""

    def __init__(self, candidates: Sequence[ProviderDescriptor]):
        self.candidates = list(candidates)
        self.position = 0

    def __len__(self) -> int:
        return len(self.candidates)

    def current(self) -> Optional[ProviderDescriptor]:
        if self.position < len(self.candidates):
            return self.candidates[self.position]
        return None

    def advance(self, failure: OrchestrationError) -> Optional[ProviderDescriptor]:
        """Move past the current candidate.

        Returns the next candidate, or None once the list is exhausted.
        Failures that another provider cannot fix are re-raised.
        """
        if not should_advance(failure):
            raise failure
        self.position += 1
        return self.current()


class FallbackController:
    def __init__(
        self,
        resolver: CredentialResolver,
        default_order: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self._resolver = resolver
        order: dict[str, tuple[str, ...]] = dict(DEFAULT_ORDER)
        for kind, ids in (default_order or {}).items():
            order[kind] = tuple(ids)
        self._order = order

    def order_for(self, kind: str) -> tuple[str, ...]:
        return self._order.get(kind, ())

    def resolve_candidates(self, request: GenerationRequest) -> list[ProviderDescriptor]:
        if request.preferred_providers:
            preferred = self._configured(request.preferred_providers)
            if preferred:
                return preferred
            logger.info(
                f"None of the preferred providers {list(request.preferred_providers)} "
                "are configured; using the default order"
            )

        candidates = self._configured(self.order_for(request.kind), warn_unknown=False)
        candidates = [d for d in candidates if d.supports(request.kind)]
        if candidates:
            return candidates

        # Nothing configured can serve this kind. Every configured provider is
        # still offered so each rejection is recorded as a capability mismatch.
        return self._configured([e.provider_id for e in CATALOG], warn_unknown=False)

    def start(self, request: GenerationRequest) -> FallbackChain:
        return FallbackChain(self.resolve_candidates(request))

    def _configured(self, provider_ids: Sequence[str], warn_unknown: bool = True) -> list[ProviderDescriptor]:
        known = {d.provider_id for d in self._resolver.all_descriptors()}
        seen: set[str] = set()
        result: list[ProviderDescriptor] = []
        for pid in provider_ids:
            if pid in seen:
                continue
            seen.add(pid)
            if pid not in known:
                if warn_unknown:
                    logger.warning(f"Ignoring unknown provider '{pid}'")
                continue
            if self._resolver.is_configured(pid):
                result.append(self._resolver.get(pid))
        return result
