"""Tests for the tiktoken-backed BPE adapter and encoding resolution."""

from unittest.mock import MagicMock, patch

import pytest

import tokenbatch_core.tokenizer as tokenizer_module
from tokenbatch_core.errors import DependencyMissingError, EncodingNotAvailableError
from tokenbatch_core.operations import (
    count_tokens,
    decode_tokens,
    encode_text,
    slice_matching_token_limit,
)
from tokenbatch_core.tokenizer import (
    DEFAULT_ENCODING,
    MODEL_TO_ENCODING,
    BpeTokenizer,
    TiktokenAdapter,
    load_encoding,
    resolve_encoding_name,
    resolve_tokenizer,
)


@pytest.fixture(autouse=True)
def _clear_encoding_cache():
    tokenizer_module._ENCODINGS.clear()
    yield
    tokenizer_module._ENCODINGS.clear()


def _mock_tiktoken():
    mock_tiktoken = MagicMock()
    encoding = MagicMock()
    encoding.name = "cl100k_base"
    encoding.encode.return_value = [1, 2, 3]
    encoding.decode.return_value = "abc"
    mock_tiktoken.get_encoding.return_value = encoding
    return mock_tiktoken, encoding


class TestTiktokenAdapterIsolated:
    def test_adapter_uses_provided_encoding(self) -> None:
        _, encoding = _mock_tiktoken()
        adapter = TiktokenAdapter(encoding=encoding)

        assert isinstance(adapter, BpeTokenizer)
        assert adapter.adapter_id == "tiktoken"
        assert adapter.encoding_name == "cl100k_base"
        assert adapter.encode("abc") == [1, 2, 3]
        encoding.encode.assert_called_with("abc", disallowed_special=())

    def test_decode_passes_list(self) -> None:
        _, encoding = _mock_tiktoken()
        adapter = TiktokenAdapter(encoding=encoding)

        assert adapter.decode((1, 2, 3)) == "abc"
        encoding.decode.assert_called_with([1, 2, 3])

    def test_within_limit(self) -> None:
        _, encoding = _mock_tiktoken()
        adapter = TiktokenAdapter(encoding=encoding)

        assert adapter.is_within_token_limit("abc", 3) is True
        assert adapter.is_within_token_limit("abc", 2) is False

    def test_encoding_loaded_once(self) -> None:
        mock_tiktoken, _ = _mock_tiktoken()
        with patch.object(tokenizer_module, "tiktoken", mock_tiktoken):
            TiktokenAdapter("cl100k_base")
            TiktokenAdapter("cl100k_base")

        mock_tiktoken.get_encoding.assert_called_once_with("cl100k_base")

    def test_missing_dependency(self) -> None:
        with patch.object(tokenizer_module, "tiktoken", None):
            with pytest.raises(DependencyMissingError, match="tiktoken"):
                load_encoding("cl100k_base")

    def test_unknown_encoding(self) -> None:
        mock_tiktoken, _ = _mock_tiktoken()
        mock_tiktoken.get_encoding.side_effect = ValueError("Unknown encoding nope")
        with patch.object(tokenizer_module, "tiktoken", mock_tiktoken):
            with pytest.raises(EncodingNotAvailableError, match="nope") as exc_info:
                load_encoding("nope")

        assert exc_info.value.encoding_name == "nope"
        assert "Recovery suggestions" in exc_info.value.get_detailed_message()


class TestResolveEncodingName:
    def test_explicit_encoding_wins(self) -> None:
        assert resolve_encoding_name(model_name="gpt-4", encoding_name="p50k_base") == "p50k_base"

    def test_default_encoding(self) -> None:
        assert resolve_encoding_name() == DEFAULT_ENCODING

    def test_model_via_tiktoken(self) -> None:
        mock_tiktoken, _ = _mock_tiktoken()
        mock_tiktoken.encoding_name_for_model.return_value = "o200k_base"
        with patch.object(tokenizer_module, "tiktoken", mock_tiktoken):
            assert resolve_encoding_name(model_name="some-new-model") == "o200k_base"

    def test_model_via_known_mapping(self) -> None:
        mock_tiktoken, _ = _mock_tiktoken()
        mock_tiktoken.encoding_name_for_model.side_effect = KeyError("text-davinci-003")
        with patch.object(tokenizer_module, "tiktoken", mock_tiktoken):
            assert resolve_encoding_name(model_name="text-davinci-003") == MODEL_TO_ENCODING["text-davinci-003"]

    def test_unknown_model(self) -> None:
        mock_tiktoken, _ = _mock_tiktoken()
        mock_tiktoken.encoding_name_for_model.side_effect = KeyError("mystery")
        with patch.object(tokenizer_module, "tiktoken", mock_tiktoken):
            with pytest.raises(EncodingNotAvailableError):
                resolve_encoding_name(model_name="mystery")

    def test_resolve_tokenizer(self) -> None:
        mock_tiktoken, _ = _mock_tiktoken()
        with patch.object(tokenizer_module, "tiktoken", mock_tiktoken):
            adapter, name = resolve_tokenizer(encoding_name="cl100k_base")

        assert name == "cl100k_base"
        assert isinstance(adapter, TiktokenAdapter)


class TestCl100kBase:
    """Checks against the real cl100k_base vocabulary."""

    def test_hello_world(self, cl100k_tokenizer) -> None:
        tokens = encode_text("hello world", cl100k_tokenizer)

        assert tokens == [15339, 1917]
        assert decode_tokens(tokens, cl100k_tokenizer) == "hello world"

    def test_count_tokens(self, cl100k_tokenizer) -> None:
        assert count_tokens("hello world", cl100k_tokenizer) == 2

    def test_special_token_text_is_plain_text(self, cl100k_tokenizer) -> None:
        text = "before <|endoftext|> after"
        assert decode_tokens(encode_text(text, cl100k_tokenizer), cl100k_tokenizer) == text

    def test_slice_long_text(self, cl100k_tokenizer) -> None:
        text = "The quick brown fox jumps over the lazy dog. " * 50
        tokens = cl100k_tokenizer.encode(text)
        blocks = slice_matching_token_limit(text, 16, cl100k_tokenizer)

        assert len(blocks) == -(-len(tokens) // 16)
        assert "".join(blocks) == text
