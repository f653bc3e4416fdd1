"""Scraping agent: fetch pages with httpx, parse with BeautifulSoup, ask the model."""
from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup
from jsonschema import Draft7Validator

from config import LLM_FORM_MODEL, LLM_MODEL, SCRAPE_MAX_CHARS, SCRAPE_TIMEOUT_S, SCRAPE_USER_AGENT
from jobs.models import utcnow
from observability.logger import get_logger

from .background import TextClient

LOGGER = get_logger("agent_lab.agents.web")

CONTENT_SELECTOR = "p, h1, h2, h3"
MAX_META_REFRESH_HOPS = 3
_META_REFRESH_URL_RE = re.compile(r"url\s*=\s*['\"]?([^'\";]+)", re.IGNORECASE)


class ScrapeError(RuntimeError):
    """Raised when a page cannot be fetched."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


@dataclass
class Page:
    url: str
    status_code: int
    body: str

    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.body, "html.parser")


def truncate(content: str, limit: int = SCRAPE_MAX_CHARS) -> str:
    return content if len(content) <= limit else content[:limit] + "..."


def _meta_refresh_target(page: Page) -> Optional[str]:
    tag = page.soup().find("meta", attrs={"http-equiv": re.compile(r"^refresh$", re.IGNORECASE)})
    if tag is None:
        return None
    match = _META_REFRESH_URL_RE.search(str(tag.get("content") or ""))
    if not match:
        return None
    return urljoin(page.url, match.group(1).strip())


def _parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}") + 1
        if start == -1 or end <= start:
            return None
        try:
            parsed = json.loads(text[start:end])
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def form_data_schema(fields: Sequence[str]) -> Dict[str, Any]:
    return {
        "type": "object",
        "required": list(fields),
        "properties": {name: {"type": ["string", "number", "boolean"]} for name in fields},
    }


class WebAutomationAgent:
    """Reads web pages and hands their text to the model for analysis."""

    def __init__(
        self,
        client: TextClient,
        *,
        http_client: Optional[httpx.Client] = None,
        model: str = LLM_MODEL,
        form_model: str = LLM_FORM_MODEL,
        max_chars: int = SCRAPE_MAX_CHARS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._http = http_client or httpx.Client(
            timeout=SCRAPE_TIMEOUT_S,
            follow_redirects=True,
            headers={"User-Agent": SCRAPE_USER_AGENT},
        )
        self._model = model
        self._form_model = form_model
        self._max_chars = max_chars
        self._sleep = sleep
        self._clock = clock

    def fetch(self, url: str) -> Page:
        current = url
        for _ in range(MAX_META_REFRESH_HOPS + 1):
            LOGGER.info("page_fetch", extra={"url": current})
            try:
                response = self._http.get(current)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise ScrapeError(current, f"HTTP {exc.response.status_code}") from exc
            except httpx.HTTPError as exc:
                raise ScrapeError(current, str(exc) or exc.__class__.__name__) from exc
            page = Page(url=str(response.url), status_code=response.status_code, body=response.text)
            target = _meta_refresh_target(page)
            if not target or target == page.url:
                return page
            current = target
        raise ScrapeError(url, "too many meta refresh redirects")

    def scrape_and_analyze(self, url: str, analysis_prompt: str = "Summarize the main content of this page") -> Dict[str, Any]:
        page = self.fetch(url)
        content = "\n".join(node.get_text(strip=True) for node in page.soup().select(CONTENT_SELECTOR))
        LOGGER.info("page_content_extracted", extra={"url": url, "chars": len(content)})
        return self._analyze_content(content, analysis_prompt)

    def extract_links(self, url: str, max_links: int = 5) -> List[Dict[str, Optional[str]]]:
        page = self.fetch(url)
        links = []
        for anchor in page.soup().find_all("a", href=True)[: max(0, max_links)]:
            href = str(anchor["href"])
            links.append({"text": anchor.get_text(strip=True), "href": href, "uri": urljoin(page.url, href)})
        return links

    def extract_and_analyze_links(self, url: str, max_links: int = 5) -> Dict[str, Any]:
        links = self.extract_links(url, max_links)
        listing = "\n".join(f"- {link['text']}: {link['uri']}" for link in links)
        prompt = f"Analyze these links and describe what type of website this appears to be:\n\n{listing}"
        result = self._analyze_content(prompt, "Provide insights about this website")
        result["links"] = links
        return result

    def search_and_extract(self, url: str, search_selector: str, analysis_prompt: str) -> Dict[str, Any]:
        page = self.fetch(url)
        elements = page.soup().select(search_selector)
        LOGGER.info("selector_matched", extra={"selector": search_selector, "count": len(elements)})
        content = "\n".join(element.get_text(strip=True) for element in elements)
        result = self._analyze_content(content, analysis_prompt)
        result["matches"] = len(elements)
        return result

    def fill_form(self, url: str, field_requirements: Sequence[str]) -> Optional[Dict[str, Any]]:
        """Generate data for the first form on the page. Nothing is submitted."""

        page = self.fetch(url)
        form = page.soup().find("form")
        if form is None:
            LOGGER.warning("form_missing", extra={"url": url})
            return None

        fields = [str(name) for name in field_requirements]
        prompt = (
            f"Generate realistic data for a form with these fields: {', '.join(fields)}. "
            "Return only a JSON object keyed by field name."
        )
        raw = self._client.ask(prompt, model=self._form_model, max_tokens=500)
        data = _parse_json_object(raw)
        errors: List[str] = []
        if data is None:
            errors.append("response is not a JSON object")
        else:
            validator = Draft7Validator(form_data_schema(fields))
            errors.extend(error.message for error in sorted(validator.iter_errors(data), key=lambda e: list(e.path)))

        form_info = {
            "action": urljoin(page.url, str(form.get("action") or "")),
            "method": str(form.get("method") or "get").lower(),
            "inputs": [str(tag.get("name")) for tag in form.find_all(["input", "select", "textarea"]) if tag.get("name")],
        }
        LOGGER.info("form_data_generated", extra={"url": url, "valid": not errors})
        return {"form": form_info, "ai_data": data, "raw": raw, "valid": not errors, "errors": errors}

    def monitor_page_changes(self, url: str, check_interval: float = 60, duration: float = 300) -> List[Dict[str, Any]]:
        LOGGER.info("monitor_started", extra={"url": url, "interval": check_interval, "duration": duration})
        previous = self.fetch(url).body
        changes: List[Dict[str, Any]] = []
        deadline = self._clock() + duration
        while self._clock() < deadline:
            self._sleep(check_interval)
            current = self.fetch(url).body
            if current == previous:
                continue
            analysis = self._analyze_content(
                f"Previous size: {len(previous)}, New size: {len(current)}",
                "What might have changed on this webpage?",
            )
            change = {
                "timestamp": utcnow().isoformat(),
                "size_diff": len(current) - len(previous),
                "analysis": analysis["analysis"],
            }
            changes.append(change)
            LOGGER.info("page_changed", extra={"url": url, "size_diff": change["size_diff"]})
            previous = current
        return changes

    def download_and_analyze(self, url: str, doc_type: str = "text") -> Dict[str, Any]:
        page = self.fetch(url)
        if doc_type == "html":
            body = page.soup().body
            content = body.get_text() if body is not None else ""
        else:
            content = page.body
        LOGGER.info("document_downloaded", extra={"url": url, "chars": len(content)})
        return self._analyze_content(content, "Summarize this document")

    def close(self) -> None:
        self._http.close()

    def _analyze_content(self, content: str, prompt: str) -> Dict[str, Any]:
        full_prompt = f"{prompt}\n\nContent:\n{truncate(content, self._max_chars)}"
        analysis = self._client.ask(full_prompt, model=self._model, max_tokens=800)
        return {
            "original_content_length": len(content),
            "analysis": analysis,
            "timestamp": utcnow().isoformat(),
        }


__all__ = ["Page", "ScrapeError", "WebAutomationAgent", "form_data_schema", "truncate"]
