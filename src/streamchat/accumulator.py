from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

from streamchat.models import GroundingMetadata


@dataclass(frozen=True)
class Fragment:
    text_delta: str = ""
    grounding_metadata: GroundingMetadata | None = None


@dataclass(frozen=True)
class AccumulatedResponse:
    text: str
    grounding_metadata: GroundingMetadata | None


class StreamAccumulator:
    """Folds the fragments of one streamed reply into a single response.

    Text deltas are concatenated in arrival order. Grounding metadata is
    replaced whenever a fragment carries a non-empty value and is otherwise
    kept from earlier fragments.
    """

    def __init__(self) -> None:
        self._text = ""
        self._grounding_metadata: GroundingMetadata | None = None
        self._fragment_count = 0

    @property
    def fragment_count(self) -> int:
        return self._fragment_count

    @property
    def snapshot(self) -> AccumulatedResponse:
        return AccumulatedResponse(text=self._text, grounding_metadata=self._grounding_metadata)

    def add(self, fragment: Fragment) -> AccumulatedResponse:
        self._fragment_count += 1
        if fragment.text_delta:
            self._text += fragment.text_delta
        metadata = fragment.grounding_metadata
        if metadata is not None and not metadata.is_empty:
            self._grounding_metadata = metadata
        return self.snapshot

    async def fold(self, fragments: AsyncIterator[Fragment]) -> AsyncIterator[AccumulatedResponse]:
        async for fragment in fragments:
            yield self.add(fragment)
