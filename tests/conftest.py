from typing import List

import pytest

from notifier import NotificationSink


class RecordingSink(NotificationSink):
    def __init__(self):
        self.messages: List[str] = []

    async def notify(self, text: str) -> None:
        self.messages.append(text)


@pytest.fixture
def sink():
    return RecordingSink()
