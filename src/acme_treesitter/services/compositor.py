"""acme-styles compositor layers."""

from __future__ import annotations

import logging
from typing import Sequence

from ..errors import CompositorError
from ..highlight.compose import StyleSpan, format_spans
from ..interfaces import Layer
from .ninep import DEFAULT_COMMAND, NinePClient

__all__ = ["AcmeStylesClient", "StyleLayer", "OptionalLayer"]

LOGGER = logging.getLogger(__name__)


class StyleLayer:
    """A layer this daemon owns for one window in acme-styles.

    No connection is held between operations, so the handle survives an
    acme-styles restart; :meth:`apply` re-allocates the layer if the server no
    longer knows it.
    """

    def __init__(self, win_id: int, layer_id: int, name: str, client: NinePClient) -> None:
        self.win_id = win_id
        self.layer_id = layer_id
        self.name = name
        self._client = client

    async def apply(self, spans: Sequence[StyleSpan]) -> None:
        """Replace the layer contents with ``spans``.

        acme-styles clears the layer when the style file is opened for writing
        and redraws once when it is closed, so a single ``9p write`` is one
        atomic replacement; writing nothing clears the layer.
        """

        payload = format_spans(spans).encode("ascii")
        try:
            await self._client.write(payload, *self._style_path())
        except CompositorError as exc:
            LOGGER.info("Window %s: layer %s unavailable (%s); re-allocating", self.win_id, self.layer_id, exc)
            self.layer_id = await _allocate(self._client, self.win_id)
            await self._client.write(payload, *self._style_path())

    async def clear(self) -> None:
        try:
            await self._client.write(b"", self.win_id, "layers", self.layer_id, "clear")
        except CompositorError as exc:
            LOGGER.debug("Window %s: clear layer %s failed: %s", self.win_id, self.layer_id, exc)

    async def delete(self) -> None:
        try:
            await self._client.write(b"delete\n", self.win_id, "layers", self.layer_id, "ctl")
        except CompositorError as exc:
            LOGGER.debug("Window %s: delete layer %s failed: %s", self.win_id, self.layer_id, exc)

    def _style_path(self) -> tuple[object, ...]:
        return (self.win_id, "layers", self.layer_id, "style")

    def __repr__(self) -> str:
        return f"StyleLayer(win={self.win_id}, layer={self.layer_id}, name={self.name!r})"


class OptionalLayer:
    """A layer handle that may be empty; every operation is safe either way."""

    __slots__ = ("_layer",)

    def __init__(self, layer: Layer | None = None) -> None:
        self._layer = layer

    @property
    def present(self) -> bool:
        return self._layer is not None

    @property
    def layer(self) -> Layer | None:
        return self._layer

    def replace(self, layer: Layer | None) -> None:
        self._layer = layer

    async def apply(self, spans: Sequence[StyleSpan]) -> None:
        if self._layer is not None:
            await self._layer.apply(spans)

    async def clear(self) -> None:
        if self._layer is not None:
            await self._layer.clear()

    async def delete(self) -> None:
        if self._layer is not None:
            await self._layer.delete()

    def __repr__(self) -> str:
        return f"OptionalLayer({self._layer!r})"


class AcmeStylesClient:
    """Allocates layers in a running acme-styles."""

    def __init__(self, service: str = "acme-styles", *, command: str = DEFAULT_COMMAND) -> None:
        self._client = NinePClient(service, command=command, error=CompositorError)

    async def open_layer(self, win_id: int, name: str) -> StyleLayer:
        layer_id = await _allocate(self._client, win_id)
        LOGGER.debug("Window %s: allocated layer %s (%s)", win_id, layer_id, name)
        return StyleLayer(win_id, layer_id, name, self._client)


async def _allocate(client: NinePClient, win_id: int) -> int:
    """Read ``<id>/layers/new``, which creates a layer and returns its id."""

    raw = await client.read(win_id, "layers", "new")
    text = raw.decode("ascii", "replace").strip()
    try:
        return int(text)
    except ValueError as exc:
        raise CompositorError(f"parsing layer id {text!r}", path=client.path(win_id, "layers", "new")) from exc
