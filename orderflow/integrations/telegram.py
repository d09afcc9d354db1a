import json
import time

import httpx

from orderflow.core.config import NOTIFICATION_TIMEOUT_SECONDS, TELEGRAM_API_BASE, TELEGRAM_BOT_TOKEN


class TelegramSendError(RuntimeError):
    def __init__(self, status_code: int, body_text: str):
        super().__init__(f"Erro Telegram {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text


def _should_retry(status_code: int, body_text: str) -> bool:
    # Erros temporários / instabilidade
    if status_code in (500, 502, 503, 504):
        return True

    # flood control: {"ok": false, "error_code": 429, "parameters": {"retry_after": N}}
    if status_code == 429:
        return True

    try:
        data = json.loads(body_text or "{}")
        if data.get("error_code") in (429, 500, 502):
            return True
    except ValueError:
        pass

    return False


def _backoff_seconds(attempt: int) -> float:
    # 0.5s, 1s (máx 2s)
    sec = 0.5 * (2 ** max(0, attempt - 1))
    return min(sec, 2.0)


def send_message(
    chat_id: str,
    text: str,
    bot_token: str | None = None,
    retries: int = 2,
    timeout: float = NOTIFICATION_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
    sleep=time.sleep,
) -> dict:
    """Send an HTML message through the Bot API ``sendMessage`` method."""
    token = bot_token or TELEGRAM_BOT_TOKEN
    if not token:
        raise RuntimeError("Falta TELEGRAM_BOT_TOKEN no .env")

    url = f"{TELEGRAM_API_BASE}/bot{token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": "HTML",
        "disable_web_page_preview": True,
    }

    owns_client = client is None
    http = client or httpx.Client(timeout=timeout)
    try:
        for attempt in range(1, retries + 1):
            try:
                r = http.post(url, json=payload)
            except (httpx.TimeoutException, httpx.NetworkError):
                if attempt < retries:
                    sleep(_backoff_seconds(attempt))
                    continue
                raise

            body_text = r.text

            # sucesso
            if 200 <= r.status_code < 300:
                try:
                    return r.json()
                except ValueError:
                    return {"ok": True, "raw": body_text}

            # erro com retry
            if _should_retry(r.status_code, body_text) and attempt < retries:
                sleep(_backoff_seconds(attempt))
                continue

            # erro final
            raise TelegramSendError(r.status_code, body_text)
    finally:
        if owns_client:
            http.close()

    raise RuntimeError("Falha desconhecida ao enviar Telegram")
