from typing import Dict, List, Sequence

import pytest
from hypothesis import settings

from tokenbatch_core.tokenizer import BpeTokenizer

# Prevent Hypothesis from writing a local example database (e.g. `.hypothesis/`) during tests.
settings.register_profile("tokenbatch-tests", database=None)
settings.load_profile("tokenbatch-tests")


# Small merge table over UTF-8 bytes; token IDs 0-255 are raw bytes.
FAKE_MERGES: Dict[bytes, int] = {
    b"th": 256,
    b"he": 257,
    b"in": 258,
    b"er": 259,
    b" t": 260,
    b"lo": 261,
}


class FakeBpeTokenizer(BpeTokenizer):
    """Deterministic, lossless byte-pair tokenizer for offline tests."""

    def __init__(self) -> None:
        self._by_id = {token: pair for pair, token in FAKE_MERGES.items()}
        self.encode_calls = 0
        self.limit_calls = 0

    @property
    def adapter_id(self) -> str:
        return "fake"

    def encode(self, text: str) -> List[int]:
        self.encode_calls += 1
        data = text.encode("utf-8")
        tokens = []
        i = 0
        while i < len(data):
            pair = data[i:i + 2]
            if pair in FAKE_MERGES:
                tokens.append(FAKE_MERGES[pair])
                i += 2
            else:
                tokens.append(data[i])
                i += 1
        return tokens

    def decode(self, tokens: Sequence[int]) -> str:
        data = b"".join(self._by_id[t] if t >= 256 else bytes([t]) for t in tokens)
        return data.decode("utf-8", errors="replace")

    def is_within_token_limit(self, text: str, max_tokens: int) -> bool:
        self.limit_calls += 1
        return len(self.encode(text)) <= max_tokens


@pytest.fixture
def fake_tokenizer() -> FakeBpeTokenizer:
    return FakeBpeTokenizer()


@pytest.fixture(scope="session")
def cl100k_tokenizer():
    """Real cl100k_base tokenizer; skipped when tiktoken or its vocabulary is unavailable."""
    tiktoken = pytest.importorskip("tiktoken")
    try:
        encoding = tiktoken.get_encoding("cl100k_base")
    except Exception as e:  # vocabulary download can fail offline
        pytest.skip(f"cl100k_base unavailable: {e}")

    from tokenbatch_core.tokenizer import TiktokenAdapter

    return TiktokenAdapter(encoding=encoding)
