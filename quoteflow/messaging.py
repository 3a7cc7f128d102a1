"""
quoteflow/messaging.py

Quote message templating for WhatsApp.

- build_quote_message(): the fixed local template (always available).
- format_quote_message(): asks the generative-text API to lay the data out in the
  same template and falls back to the local template on any failure.
- approve_message() / extract_observations() / append_quick_text(): approval editing.
- whatsapp_url(): wa.me deep link for a supplier phone.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional
from urllib.parse import quote as urlquote

import requests
from flask import current_app, has_app_context

from .errors import IntegrationError
from .models import QuoteType
from .utils import only_digits

logger = logging.getLogger(__name__)

EMPTY_FIELD = "---"
WHATSAPP_COUNTRY_CODE = "55"

QUICK_TEXTS = (
    "PODE EXECUTAR",
    "APROVADO CONFORME ORÇAMENTO",
    "AGUARDANDO PEÇAS",
    "URGENTE",
)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*$", re.MULTILINE)
_DOUBLE_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")


def _or_empty(value: Optional[str]) -> str:
    value = (value or "").strip()
    return value or EMPTY_FIELD


def type_label(quote_type: QuoteType | str) -> str:
    return "APROVADO" if QuoteType(quote_type) is QuoteType.APPROVAL else "SOLICITADO"


def build_quote_message(
    quote_type: QuoteType | str,
    observations: str,
    supplier_name: str,
    prefix: Optional[str] = None,
    parts_number: Optional[str] = None,
    services_number: Optional[str] = None,
) -> str:
    """Fixed WhatsApp layout used by the company for quote requests and approvals."""
    return (
        f"ORCAMENTO *VOLUS* {type_label(quote_type)}\n"
        f"EMPRESA: *{(supplier_name or '').strip().upper()}*\n"
        "\n"
        f"PREFIXO: *{_or_empty(prefix)}*\n"
        f"ORC. VOLUS PEÇAS: *{_or_empty(parts_number)}*\n"
        f"ORC. VOLUS SERVIÇOS: *{_or_empty(services_number)}*\n"
        "\n"
        f"OBS: *{(observations or '').strip().upper()}*"
    )


def clean_generated_text(text: Optional[str]) -> str:
    """Strip incidental markup from a generated reply (code fences, backticks, markdown bold)."""
    if not text:
        return ""
    cleaned = _FENCE_RE.sub("", text)
    cleaned = cleaned.replace("`", "")
    cleaned = _DOUBLE_BOLD_RE.sub(r"*\1*", cleaned)
    lines = [line.rstrip() for line in cleaned.strip().splitlines()]
    return "\n".join(lines).strip()


def _build_prompt(template: str, observations: str, supplier_name: str, prefix, parts_number, services_number) -> str:
    return (
        "Transforme os dados abaixo em uma mensagem de WhatsApp seguindo EXATAMENTE o layout do modelo.\n\n"
        "DADOS:\n"
        f"- Empresa: {supplier_name}\n"
        f"- Prefixo: {_or_empty(prefix)}\n"
        f"- Nº Orçamento Peças: {_or_empty(parts_number)}\n"
        f"- Nº Orçamento Serviços: {_or_empty(services_number)}\n"
        f"- Observações: {observations}\n\n"
        "MODELO OBRIGATÓRIO:\n"
        f"{template}\n\n"
        "REGRAS:\n"
        "1. Use asteriscos (*) apenas para o negrito.\n"
        "2. Mantenha as quebras de linha duplas entre os blocos como no modelo.\n"
        "3. Não adicione saudações ou textos extras.\n"
        "4. Retorne APENAS o texto puro formatado conforme o modelo acima."
    )


class GeminiClient:
    """Minimal client for the generateContent REST endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        url_template: str,
        timeout: int = 20,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model
        self.url_template = url_template
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_app(cls) -> "GeminiClient":
        config = current_app.config
        return cls(
            api_key=config.get("GEMINI_API_KEY"),
            model=config.get("GEMINI_MODEL", "gemini-3-flash-preview"),
            url_template=config.get("GEMINI_API_URL"),
            timeout=int(config.get("GEMINI_TIMEOUT_SECONDS", 20)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.url_template)

    def generate(self, prompt: str) -> str:
        """Return the reply text. Raises IntegrationError on any transport or payload problem."""
        if not self.configured:
            raise IntegrationError("API de texto não configurada.", code="gemini_not_configured")

        url = self.url_template.format(model=self.model)
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            response = self.session.post(
                url,
                json=body,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload: Any = response.json()
        except requests.RequestException as exc:
            raise IntegrationError(f"Falha na API de texto: {exc}", code="gemini_request_failed") from exc
        except ValueError as exc:
            raise IntegrationError("Resposta inválida da API de texto.", code="gemini_bad_payload") from exc

        try:
            parts = payload["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as exc:
            raise IntegrationError("Resposta sem conteúdo da API de texto.", code="gemini_empty") from exc

        return "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))


def format_quote_message(
    quote_type: QuoteType | str,
    observations: str,
    supplier_name: str,
    prefix: Optional[str] = None,
    parts_number: Optional[str] = None,
    services_number: Optional[str] = None,
    client: Optional[GeminiClient] = None,
) -> str:
    """
    Generated WhatsApp message for a quote.

    The local template is returned whenever the API is unconfigured, fails, or answers
    with nothing usable, so the quote workflow always completes.
    """
    template = build_quote_message(quote_type, observations, supplier_name, prefix, parts_number, services_number)

    if client is None:
        if not has_app_context():
            return template
        client = GeminiClient.from_app()

    if not client.configured:
        return template

    prompt = _build_prompt(template, observations, supplier_name, prefix, parts_number, services_number)
    try:
        generated = clean_generated_text(client.generate(prompt))
    except IntegrationError as exc:
        logger.warning("quote message formatting fell back to template: %s", exc.message, extra={"code": exc.code})
        return template

    if not generated:
        logger.warning("quote message formatting returned empty text; using template")
        return template
    return generated


def extract_observations(message: Optional[str]) -> str:
    """OBS content of a stored message (asterisks removed), or the whole text when there is no OBS line."""
    message = message or ""
    for line in message.split("\n"):
        if line.startswith("OBS:"):
            return line.replace("OBS:", "", 1).replace("*", "").strip()
    return message


def approve_message(quote: Any, observations: str) -> str:
    """Approval message for an existing quote with the edited observations."""
    return build_quote_message(
        QuoteType.APPROVAL,
        observations,
        quote.supplier_name,
        quote.prefix,
        quote.quote_number_parts,
        quote.quote_number_services,
    )


def append_quick_text(current: Optional[str], text: str) -> str:
    current = (current or "").strip()
    return f"{current} - {text}" if current else text


def whatsapp_url(phone: Optional[str], text: Optional[str]) -> str:
    digits = only_digits(phone)
    clean_text = (text or "").replace("`", "")
    return f"https://wa.me/{WHATSAPP_COUNTRY_CODE}{digits}?text={urlquote(clean_text, safe='')}"
