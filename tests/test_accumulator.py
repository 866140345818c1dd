import asyncio
import unittest

from streamchat.accumulator import Fragment, StreamAccumulator
from streamchat.models import GroundingChunk, GroundingMetadata, WebSource


def _metadata(uri: str) -> GroundingMetadata:
    return GroundingMetadata(grounding_chunks=(GroundingChunk(web=WebSource(uri=uri, title=uri)),))


async def _aiter(items):
    for item in items:
        yield item


def _fold(fragments: list[Fragment]):
    async def collect():
        return [snapshot async for snapshot in StreamAccumulator().fold(_aiter(fragments))]

    return asyncio.run(collect())


class StreamAccumulatorTests(unittest.TestCase):
    def test_text_is_concatenated_in_arrival_order(self) -> None:
        deltas = ["Paris", " is", " the", " capital", "."]

        snapshots = _fold([Fragment(text_delta=d) for d in deltas])

        self.assertEqual(len(deltas), len(snapshots))
        for before, after in zip(snapshots, snapshots[1:]):
            self.assertTrue(after.text.startswith(before.text))
            self.assertGreater(len(after.text), len(before.text))
        self.assertEqual("".join(deltas), snapshots[-1].text)

    def test_latest_metadata_wins(self) -> None:
        a, b = _metadata("a"), _metadata("b")
        fragments = [
            Fragment(text_delta="1"),
            Fragment(text_delta="2", grounding_metadata=a),
            Fragment(text_delta="3"),
            Fragment(text_delta="4", grounding_metadata=b),
        ]

        snapshots = _fold(fragments)

        self.assertEqual([None, a, a, b], [s.grounding_metadata for s in snapshots])

    def test_metadata_persists_when_later_fragments_omit_it(self) -> None:
        a = _metadata("a")
        snapshots = _fold([
            Fragment(text_delta="x", grounding_metadata=a),
            Fragment(text_delta="y"),
            Fragment(text_delta="z"),
        ])
        self.assertEqual(a, snapshots[-1].grounding_metadata)

    def test_empty_metadata_does_not_replace(self) -> None:
        a = _metadata("a")
        accumulator = StreamAccumulator()
        accumulator.add(Fragment(grounding_metadata=a))
        result = accumulator.add(Fragment(text_delta="more", grounding_metadata=GroundingMetadata()))
        self.assertEqual(a, result.grounding_metadata)

    def test_long_stream_keeps_every_delta(self) -> None:
        accumulator = StreamAccumulator()
        for i in range(2000):
            result = accumulator.add(Fragment(text_delta=f"{i % 10}"))
        self.assertEqual(2000, len(result.text))
        self.assertEqual("0123456789", result.text[:10])
        self.assertEqual(2000, accumulator.fragment_count)

    def test_each_accumulator_starts_fresh(self) -> None:
        first = StreamAccumulator()
        first.add(Fragment(text_delta="old"))
        second = StreamAccumulator()
        self.assertEqual("", second.snapshot.text)
        self.assertEqual(0, second.fragment_count)


if __name__ == "__main__":
    unittest.main()
