"""
Tests for callback URL construction and parsing.
"""

from urllib.parse import parse_qs, urlsplit
from uuid import uuid4

import pytest

from photoforge.exceptions import MalformedCallbackError
from photoforge.services.callbacks import (
    WEBHOOK_PATH,
    CallbackType,
    CallbackUrlBuilder,
    parse_callback_params,
)


def _query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


class TestCallbackUrlBuilder:
    """Tests for building callback URLs."""

    def test_generation_url_carries_correlation_ids(self) -> None:
        user_id, generation_id = uuid4(), uuid4()
        url = CallbackUrlBuilder("https://photoforge.test/").generation_url(
            user_id, "demo", generation_id
        )

        assert url.startswith(f"https://photoforge.test{WEBHOOK_PATH}?")
        assert _query(url) == {
            "type": "generation",
            "user_id": str(user_id),
            "model_ref": "demo",
            "generation_id": str(generation_id),
        }

    def test_training_url(self) -> None:
        model_id = uuid4()
        url = CallbackUrlBuilder("https://photoforge.test").training_url(model_id)

        assert _query(url) == {"type": "training", "model_id": str(model_id)}

    def test_secret_is_appended_as_token(self) -> None:
        url = CallbackUrlBuilder("https://photoforge.test", secret="s3cret").training_url(uuid4())

        assert _query(url)["token"] == "s3cret"

    def test_built_url_parses_back(self) -> None:
        user_id, generation_id = uuid4(), uuid4()
        model_ref = str(uuid4())
        url = CallbackUrlBuilder("https://photoforge.test", secret="s3cret").generation_url(
            user_id, model_ref, generation_id
        )

        params = parse_callback_params(_query(url))

        assert params.callback_type == CallbackType.GENERATION
        assert params.user_id == user_id
        assert params.generation_id == generation_id
        assert params.model_ref == model_ref
        assert params.token == "s3cret"


class TestParseCallbackParams:
    """Tests for parsing webhook query strings."""

    def test_training_params(self) -> None:
        model_id = uuid4()
        params = parse_callback_params({"type": "training", "model_id": str(model_id)})

        assert params.callback_type == CallbackType.TRAINING
        assert params.model_id == model_id
        assert params.token is None

    @pytest.mark.parametrize(
        "query",
        [
            {},
            {"type": "upscale"},
            {"type": "training"},
            {"type": "training", "model_id": "not-a-uuid"},
            {"type": "generation", "user_id": str(uuid4()), "generation_id": str(uuid4())},
            {"type": "generation", "model_ref": "demo", "generation_id": str(uuid4())},
            {"type": "generation", "model_ref": "demo", "user_id": str(uuid4())},
        ],
    )
    def test_malformed_queries_rejected(self, query: dict[str, str]) -> None:
        with pytest.raises(MalformedCallbackError):
            parse_callback_params(query)
