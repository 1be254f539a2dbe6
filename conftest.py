import asyncio

import pytest


class FakeClassifier:
    """Stands in for the image classifier; returns a canned response or raises."""

    name = "fake"

    def __init__(self, response=None, error=None, gate=None):
        self.response = [] if response is None else response
        self.error = error
        self.gate = gate
        self.calls = []

    async def classify(self, image_ref):
        self.calls.append(image_ref)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.response


class HangingClassifier:
    name = "hanging"

    async def classify(self, image_ref):
        await asyncio.sleep(3600)


@pytest.fixture
def fake_classifier():
    return FakeClassifier


@pytest.fixture
def hanging_classifier():
    return HangingClassifier()
