from types import SimpleNamespace
from unittest import mock

import pytest
import requests

from quoteflow.errors import IntegrationError
from quoteflow.messaging import (
    GeminiClient,
    append_quick_text,
    approve_message,
    build_quote_message,
    clean_generated_text,
    extract_observations,
    format_quote_message,
    whatsapp_url,
)
from quoteflow.models import QuoteType

URL = "https://api.example.test/models/{model}:generateContent"


def _client(session):
    return GeminiClient(api_key="k-123", model="m-1", url_template=URL, timeout=5, session=session)


def _reply(payload, status_code=200):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


def test_request_template():
    message = build_quote_message(QuoteType.REQUEST, "troca de óleo", "oficina do zé", "V-12", "P-9", "")
    assert message == (
        "ORCAMENTO *VOLUS* SOLICITADO\n"
        "EMPRESA: *OFICINA DO ZÉ*\n"
        "\n"
        "PREFIXO: *V-12*\n"
        "ORC. VOLUS PEÇAS: *P-9*\n"
        "ORC. VOLUS SERVIÇOS: *---*\n"
        "\n"
        "OBS: *TROCA DE ÓLEO*"
    )


def test_approval_template_label():
    message = build_quote_message(QuoteType.APPROVAL.value, "", "ACME")
    assert message.startswith("ORCAMENTO *VOLUS* APROVADO\n")
    assert "PREFIXO: *---*" in message


def test_generate_posts_contents_and_joins_parts():
    session = mock.Mock()
    session.post.return_value = _reply({"candidates": [{"content": {"parts": [{"text": "A"}, {"text": "B"}]}}]})

    assert _client(session).generate("hello") == "AB"

    args, kwargs = session.post.call_args
    assert args[0] == "https://api.example.test/models/m-1:generateContent"
    assert kwargs["json"] == {"contents": [{"parts": [{"text": "hello"}]}]}
    assert kwargs["headers"] == {"x-goog-api-key": "k-123"}
    assert kwargs["timeout"] == 5


@pytest.mark.parametrize(
    "reply, code",
    [
        (_reply({}, status_code=500), "gemini_request_failed"),
        (_reply({"candidates": []}), "gemini_empty"),
    ],
)
def test_generate_failures_raise_integration_error(reply, code):
    session = mock.Mock()
    session.post.return_value = reply
    with pytest.raises(IntegrationError) as excinfo:
        _client(session).generate("x")
    assert excinfo.value.code == code


def test_generate_timeout_raises_integration_error():
    session = mock.Mock()
    session.post.side_effect = requests.Timeout("slow")
    with pytest.raises(IntegrationError):
        _client(session).generate("x")


def test_unconfigured_client_uses_template_without_calling_api():
    session = mock.Mock()
    client = GeminiClient(api_key="", model="m", url_template=URL, session=session)
    message = format_quote_message(QuoteType.REQUEST, "obs", "ACME", client=client)

    assert message == build_quote_message(QuoteType.REQUEST, "obs", "ACME")
    session.post.assert_not_called()


def test_api_failure_falls_back_to_template():
    session = mock.Mock()
    session.post.side_effect = requests.ConnectionError("down")

    message = format_quote_message(QuoteType.REQUEST, "obs", "ACME", "V-1", client=_client(session))
    assert message == build_quote_message(QuoteType.REQUEST, "obs", "ACME", "V-1")


def test_blank_reply_falls_back_to_template():
    session = mock.Mock()
    session.post.return_value = _reply({"candidates": [{"content": {"parts": [{"text": "```\n```"}]}}]})

    message = format_quote_message(QuoteType.APPROVAL, "ok", "ACME", client=_client(session))
    assert message == build_quote_message(QuoteType.APPROVAL, "ok", "ACME")


def test_generated_reply_is_cleaned():
    session = mock.Mock()
    session.post.return_value = _reply(
        {"candidates": [{"content": {"parts": [{"text": "```text\nORCAMENTO **VOLUS** `X`\n```"}]}}]}
    )
    message = format_quote_message(QuoteType.REQUEST, "obs", "ACME", client=_client(session))
    assert message == "ORCAMENTO *VOLUS* X"


def test_format_outside_app_context_uses_template():
    assert format_quote_message(QuoteType.REQUEST, "a", "B") == build_quote_message(QuoteType.REQUEST, "a", "B")


def test_clean_generated_text_handles_empty():
    assert clean_generated_text(None) == ""
    assert clean_generated_text("  **a**  ") == "*a*"


def test_extract_observations():
    message = build_quote_message(QuoteType.REQUEST, "trocar filtro", "ACME")
    assert extract_observations(message) == "TROCAR FILTRO"
    assert extract_observations("texto livre") == "texto livre"
    assert extract_observations(None) == ""


def test_append_quick_text():
    assert append_quick_text("", "URGENTE") == "URGENTE"
    assert append_quick_text("TROCAR FILTRO", "URGENTE") == "TROCAR FILTRO - URGENTE"


def test_approve_message_keeps_quote_numbers():
    quote = SimpleNamespace(
        supplier_name="acme",
        prefix="V-7",
        quote_number_parts="P-1",
        quote_number_services="S-2",
    )
    message = approve_message(quote, "pode executar")
    assert message.startswith("ORCAMENTO *VOLUS* APROVADO")
    assert "PREFIXO: *V-7*" in message
    assert "ORC. VOLUS SERVIÇOS: *S-2*" in message
    assert message.endswith("OBS: *PODE EXECUTAR*")


def test_whatsapp_url():
    url = whatsapp_url("(11) 98765-4321", "OLÁ *A* `b`\nX")
    assert url.startswith("https://wa.me/5511987654321?text=")
    assert "%60" not in url
    assert "%0A" in url
    assert "%2AA%2A" in url


def test_whatsapp_url_without_phone():
    assert whatsapp_url(None, None) == "https://wa.me/55?text="
