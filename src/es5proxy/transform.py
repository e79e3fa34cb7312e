"""ES2015+ → ES5 source transform.

BabelTransformer runs the babel-standalone build that ships inside the dukpy
package on dukpy's embedded interpreter. Compilation is CPU-bound and runs in
a worker thread so it never stalls the event loop. Presets are fixed at
process start from TransformSettings.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any

import dukpy
import structlog

from es5proxy.errors import ErrorCode, ProxyError

if TYPE_CHECKING:
    from es5proxy.config import TransformSettings

log = structlog.get_logger()

_BABEL_BUILD_GLOB = "babel-*.min.js"

_COMPILE_SNIPPET = "Babel.transform(dukpy.es6code, dukpy.babel_options).code;"


def bundled_babel_path() -> Path:
    """Locate the babel-standalone build shipped with dukpy."""
    modules_dir = Path(dukpy.__file__).resolve().parent / "jsmodules"
    builds = sorted(modules_dir.glob(_BABEL_BUILD_GLOB))
    if not builds:
        raise FileNotFoundError(f"No {_BABEL_BUILD_GLOB} found in {modules_dir}")
    return builds[-1]


class BabelTransformer:
    """Babel-backed implementation of TransformerProtocol."""

    def __init__(self, settings: TransformSettings, *, babel_path: Path | None = None) -> None:
        self._options: dict[str, Any] = {"presets": settings.presets}
        path = babel_path or bundled_babel_path()
        self._babel_source = path.read_text(encoding="utf-8")
        log.debug("babel_loaded", path=str(path))

    def _compile(self, code: str) -> str:
        # evaljs spins up a fresh interpreter, so worker threads share nothing
        return dukpy.evaljs(
            (self._babel_source, _COMPILE_SNIPPET),
            es6code=code,
            babel_options=self._options,
        )

    async def transform(self, code: str) -> str:
        """Compile ``code`` to ES5. Raises ProxyError(TRANSFORM_FAILED)."""
        try:
            return await asyncio.to_thread(self._compile, code)
        except dukpy.JSRuntimeError as exc:
            log.warning("transform_failed", error=str(exc))
            raise ProxyError(
                code=ErrorCode.TRANSFORM_FAILED,
                message=f"Failed to transpile script: {exc}",
                suggestion="The upstream script could not be parsed as JavaScript.",
                recoverable=False,
            ) from exc
