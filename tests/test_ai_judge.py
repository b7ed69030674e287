# tests/test_ai_judge.py

import json

import httpx
import pytest

from config import AIJudgeConfig
from core.ai_judge import AISimilarityJudge
from core.errors import ConfigurationError, JudgeUnavailable
from core.vision_client import VisionChatClient, image_data_url


def make_judge(mock_client, handler):
    client = VisionChatClient(api_key="test-key", client=mock_client(handler))
    return AISimilarityJudge(client)


def test_valid_verdict(mock_client, chat_response, gradient_png, mirrored_png):
    def handler(request):
        return httpx.Response(200, json=chat_response(
            {"result": False, "message": "Different images"}))

    verdict = make_judge(mock_client, handler).judge(gradient_png, mirrored_png)

    assert verdict.same is False
    assert verdict.message == "Different images"


def test_request_shape(mock_client, chat_response, gradient_png, gradient_jpeg):
    seen = {}

    def handler(request):
        seen['url'] = str(request.url)
        seen['auth'] = request.headers['Authorization']
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json=chat_response({"result": True, "message": "same"}))

    judge = make_judge(mock_client, handler)
    judge.judge(gradient_png, gradient_jpeg)

    body = seen['body']
    images = [part['image_url']['url'] for part in body['messages'][1]['content']
              if part['type'] == 'image_url']
    assert seen['url'] == "https://llm.test/v1/chat/completions"
    assert seen['auth'] == "Bearer test-key"
    assert body['response_format'] == {"type": "json_object"}
    assert body['stream'] is False
    assert body['messages'][0]['role'] == 'system'
    assert images[0].startswith("data:image/png;base64,")
    assert images[1].startswith("data:image/jpeg;base64,")
    assert judge.calls_made == 1


@pytest.mark.parametrize("content", [
    "not json at all",
    json.dumps({"result": "true", "message": "same"}),
    json.dumps({"result": 1, "message": "same"}),
    json.dumps({"result": True}),
    json.dumps(["result", True]),
])
def test_contract_violations_are_unavailable(mock_client, chat_response, content,
                                              gradient_png, mirrored_png):
    def handler(request):
        return httpx.Response(200, json=chat_response(content))

    assert make_judge(mock_client, handler).judge(gradient_png, mirrored_png) is None


def test_server_error_is_unavailable(mock_client, gradient_png, mirrored_png):
    def handler(request):
        return httpx.Response(500, json={"error": "overloaded"})

    assert make_judge(mock_client, handler).judge(gradient_png, mirrored_png) is None


def test_timeout_is_unavailable(mock_client, gradient_png, mirrored_png):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    assert make_judge(mock_client, handler).judge(gradient_png, mirrored_png) is None


def test_missing_choices_is_unavailable(mock_client, gradient_png, mirrored_png):
    def handler(request):
        return httpx.Response(200, json={"choices": []})

    assert make_judge(mock_client, handler).judge(gradient_png, mirrored_png) is None


def test_request_verdict_raises(mock_client, gradient_png, mirrored_png):
    def handler(request):
        return httpx.Response(503)

    with pytest.raises(JudgeUnavailable):
        make_judge(mock_client, handler).request_verdict(gradient_png, mirrored_png)


def test_missing_api_key_fails_fast(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        AISimilarityJudge.from_config(AIJudgeConfig())


def test_api_key_from_environment(monkeypatch, mock_client, chat_response,
                                  gradient_png, mirrored_png):
    monkeypatch.setenv("JUDGE_KEY", "from-env")
    seen = {}

    def handler(request):
        seen['auth'] = request.headers['Authorization']
        return httpx.Response(200, json=chat_response({"result": True, "message": "ok"}))

    judge = AISimilarityJudge.from_config(AIJudgeConfig(api_key_env="JUDGE_KEY"),
                                          http_client=mock_client(handler))
    judge.judge(gradient_png, mirrored_png)

    assert seen['auth'] == "Bearer from-env"


def test_data_url_sniffs_mime(gradient_jpeg):
    assert image_data_url(gradient_jpeg).startswith("data:image/jpeg;base64,")
    assert image_data_url(b"plain text").startswith("data:image/png;base64,")
