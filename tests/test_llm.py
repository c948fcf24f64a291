"""Tests for the chat-completions client and reply parsing."""

import asyncio

import pytest
import requests

from job_applier.config import LLMConfig
from job_applier.errors import LanguageModelError
from job_applier.llm import ChatCompletionModel, extract_json


class FakeResponse:
    def __init__(self, payload=None, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Client Error")

    def json(self):
        return self.payload


class FakeHttp:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.models = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.models.append(json["model"])
        return self.responses.pop(0)


def reply(text):
    return FakeResponse({"choices": [{"message": {"content": text}}]})


def test_extract_bare_json():
    assert extract_json('{"score": 80}') == {"score": 80}


def test_extract_fenced_json():
    text = 'Here you go:\n```json\n{"fields": []}\n```\nLet me know.'
    assert extract_json(text) == {"fields": []}


def test_extract_json_wrapped_in_prose():
    assert extract_json('Sure! {"pageType": "login"} Hope that helps.') == {"pageType": "login"}


def test_extract_json_array():
    assert extract_json("Result: [1, 2, 3]") == [1, 2, 3]


def test_extract_json_failure_returns_none():
    assert extract_json("I could not tell.") is None
    assert extract_json("") is None


def test_requires_api_key():
    with pytest.raises(LanguageModelError):
        ChatCompletionModel(LLMConfig())


def test_first_model_answers():
    http = FakeHttp(reply("hello"))
    model = ChatCompletionModel(LLMConfig(api_key="k", models=("a", "b")), session=http)
    assert asyncio.run(model.complete("hi")) == "hello"
    assert http.models == ["a"]


def test_falls_back_to_next_model():
    """A rate-limited model hands over to the next one in the list."""
    http = FakeHttp(FakeResponse(status=429), FakeResponse({}), reply("from c"))
    model = ChatCompletionModel(LLMConfig(api_key="k", models=("a", "b", "c")), session=http)
    assert model.complete_sync("hi") == "from c"
    assert http.models == ["a", "b", "c"]


def test_all_models_failing_raises():
    http = FakeHttp(FakeResponse(status=503), FakeResponse(status=503))
    model = ChatCompletionModel(LLMConfig(api_key="k", models=("a", "b")), session=http)
    with pytest.raises(LanguageModelError) as info:
        model.complete_sync("hi")
    assert len(info.value.context["errors"]) == 2
