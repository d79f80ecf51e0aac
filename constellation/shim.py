"""
Environment masking for runtime entry points.

The runtime hands every entry point (fetch, queue, scheduled, trace, email) an
env mapping of raw bindings. Bindings whose name carries the beta prefix are
replaced by a ConstellationApi under the unprefixed name before user code sees
the env.
"""

import inspect
import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .api import ConstellationApi
from .config import CONSTELLATION_BETA_PREFIX, CONSTELLATION_IMPORTS, LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


async def _resolve(result: Any) -> Any:
    """Await the handler result only when it is awaitable (handlers may be sync)."""
    if inspect.isawaitable(result):
        return await result
    return result


class EnvMasker:
    """
    Rewrites env mappings, memoized per env object.

    The cache is keyed by id(env) and holds a strong reference to env, so a
    cached id can't be reused by another object. Entries are never evicted.
    """

    def __init__(
        self,
        imports: Iterable[str] = CONSTELLATION_IMPORTS,
        prefix: str = CONSTELLATION_BETA_PREFIX,
    ):
        self.prefix = prefix
        self.beta_bindings = [name for name in imports if name.startswith(prefix)]
        self._cache: Dict[int, Tuple[Mapping[str, Any], Dict[str, Any]]] = {}

    def mask(self, env: Mapping[str, Any]) -> Dict[str, Any]:
        cached = self._cache.get(id(env))
        if cached is not None and cached[0] is env:
            return cached[1]

        masked = dict(env)
        wrapped = 0
        for binding_name in self.beta_bindings:
            if binding_name not in env:
                continue
            del masked[binding_name]
            masked[binding_name[len(self.prefix) :]] = ConstellationApi(env[binding_name])
            wrapped += 1

        self._cache[id(env)] = (env, masked)
        logger.debug(f"Masked env {id(env):#x}: wrapped {wrapped} binding(s)")
        return masked

    def __len__(self) -> int:
        return len(self._cache)


class ShimmedWorker:
    """
    Wraps a worker so each entry point receives the masked env.

    Arguments other than env are forwarded unchanged; every other attribute
    of the wrapped worker is passed through.
    """

    def __init__(
        self,
        worker: Any,
        imports: Iterable[str] = CONSTELLATION_IMPORTS,
        masker: Optional[EnvMasker] = None,
    ):
        self._worker = worker
        self.masker = masker if masker is not None else EnvMasker(imports)

    async def fetch(self, request, env, ctx):
        return await _resolve(self._worker.fetch(request, self.masker.mask(env), ctx))

    async def queue(self, batch, env, ctx):
        return await _resolve(self._worker.queue(batch, self.masker.mask(env), ctx))

    async def scheduled(self, controller, env, ctx):
        return await _resolve(self._worker.scheduled(controller, self.masker.mask(env), ctx))

    async def trace(self, traces, env, ctx):
        return await _resolve(self._worker.trace(traces, self.masker.mask(env), ctx))

    async def email(self, message, env, ctx):
        return await _resolve(self._worker.email(message, self.masker.mask(env), ctx))

    def __getattr__(self, name: str) -> Any:
        return getattr(self._worker, name)
