"""
Browser automation tracking for carriers that only offer a CAPTCHA protected
web form.

The CAPTCHA is drawn on a canvas by the page itself: an init script wraps
CanvasRenderingContext2D.fillText before any page script runs and records every
short alphanumeric string drawn, so the exact code is read back without OCR.
OCR of the canvas screenshot is kept as a fallback.
"""
import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional, Sequence

from playwright.async_api import async_playwright

from freight_tracking.core.exceptions import CaptchaNotSolvedException, ExceptionFactory
from freight_tracking.core.settings import CarrierIntegrationSettings, get_carrier_integration_settings
from freight_tracking.schemas.tracking_schema import TrackingResult
from freight_tracking.services.interfaces.tracking_adapter_interface import ITrackingAdapter
from freight_tracking.services.tracking.captcha_solver import CaptchaSolver
from freight_tracking.services.tracking.text_normalization import (
    classify_status,
    detect_occurrence,
    normalize_document_number,
    normalize_for_match,
    only_digits,
)

logger = logging.getLogger(__name__)

EXPRESSO_SAO_MIGUEL = "EXPRESSO_SAO_MIGUEL"
SUPPORTED_PORTALS = (EXPRESSO_SAO_MIGUEL,)

CAPTCHA_CAPTURE_SCRIPT = """
(() => {
  const captured = [];
  const original = CanvasRenderingContext2D.prototype.fillText;
  CanvasRenderingContext2D.prototype.fillText = function (text, ...args) {
    if (/^[a-z0-9]{3,6}$/i.test(String(text))) {
      captured.push(String(text));
      window.__captchaCapture = captured;
    }
    return original.apply(this, [text, ...args]);
  };
})();
"""

READ_CAPTURE_SCRIPT = """
() => {
  const captured = window.__captchaCapture || [];
  return captured[captured.length - 1] || null;
}
"""

CLICK_SUBMIT_SCRIPT = """
() => {
  const button = Array.from(document.querySelectorAll('button'))
    .find((b) => (b.innerText || b.textContent || '').toLowerCase().includes('consultar'));
  if (button) { button.click(); return true; }
  return false;
}
"""

INVOICE_SELECTORS = ("#numberdocumento", "#numberdocument")
DOCUMENT_SELECTORS = ("#cpfcnpj",)
CAPTCHA_SELECTORS = ('[id^="captcha"]', 'input[placeholder*="chave" i]')

# Tokens that mark a line of the result page as a tracking event
TRACKING_KEYWORDS = (
    "ENTREGUE", "ENTREGA", "TRANSITO", "SAIDA", "CHEGADA",
    "RECEBIDO", "EXPEDIDO", "COLETADO", "DISTRIBUICAO", "AGUARDANDO",
    "TRANSFERENCIA", "DEVOLV", "RETORNO", "CANCELAD",
)

# Lines with these are form labels / navigation, never events
UI_SKIP = (
    "rastrear", "pesquisar", "buscar", "consultar", "cnpj", "nota fiscal",
    "captcha", "código", "enviar", "limpar", "resultado", "copyright",
    "fale conosco", "home", "portal",
)


def extract_last_event_from_text(text: Optional[str]) -> Optional[str]:
    """Last line of the rendered page that reads like a tracking event"""
    last_event = None
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if len(line) <= 5:
            continue
        lower = line.lower()
        if any(skip in lower for skip in UI_SKIP):
            continue
        normalized = normalize_for_match(line)
        if any(keyword in normalized for keyword in TRACKING_KEYWORDS):
            last_event = line
    return last_event


def is_captcha_rejection(text: Optional[str]) -> bool:
    lower = (text or "").lower()
    return "captcha" in lower and "informe" in lower


BrowserFactory = Callable[[], Awaitable[Any]]


class PortalTrackingAdapter(ITrackingAdapter):
    """
    Headless browser over a carrier web form

    One browser per sync run, launched on first use and released by aclose().
    browser_factory is injectable so tests can drive fake browser/page objects.
    """

    carrier_label = "Portal"

    def __init__(
        self,
        settings: Optional[CarrierIntegrationSettings] = None,
        browser_factory: Optional[BrowserFactory] = None,
        captcha_solver: Optional[CaptchaSolver] = None,
        settle_seconds: Optional[float] = None,
        retry_delay_seconds: float = 1.0,
        failure_delay_seconds: float = 2.0,
    ):
        self.settings = settings or get_carrier_integration_settings()
        self._browser_factory = browser_factory or self._launch_chromium
        self.captcha_solver = captcha_solver or CaptchaSolver()
        self.settle_seconds = self.settings.portal_settle_seconds if settle_seconds is None else settle_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self.failure_delay_seconds = failure_delay_seconds
        self._playwright = None
        self._browser = None

    async def _launch_chromium(self):
        self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(
            headless=self.settings.portal_headless,
            args=["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"],
            timeout=self.settings.portal_navigation_timeout * 1000,
        )

    async def _get_browser(self):
        if self._browser is None:
            logger.info("Launching headless browser for portal tracking")
            self._browser = await self._browser_factory()
        return self._browser

    async def aclose(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()

    async def track(
        self,
        sender_document: str,
        invoice_number: str,
        carrier_param: Optional[str] = None
    ) -> TrackingResult:
        portal_code = (carrier_param or "").strip().upper()
        if portal_code not in SUPPORTED_PORTALS:
            raise ExceptionFactory.unsupported_portal(self.carrier_label, carrier_param)

        cnpj = only_digits(sender_document)
        nf = normalize_document_number(invoice_number)
        return await self._track_expresso_sao_miguel(cnpj, nf)

    async def _track_expresso_sao_miguel(self, cnpj: str, nf: str) -> TrackingResult:
        browser = await self._get_browser()
        max_attempts = self.settings.portal_max_attempts

        for attempt in range(1, max_attempts + 1):
            page = await browser.new_page(viewport={"width": 1366, "height": 768})
            try:
                page_text = await self._submit_form(page, attempt, cnpj, nf)
            except Exception as e:
                logger.error(f"[ESM] Attempt {attempt}/{max_attempts} failed: {str(e)}")
                if attempt == max_attempts:
                    raise
                await asyncio.sleep(self.failure_delay_seconds)
                continue
            finally:
                await page.close()

            if page_text is None:
                await asyncio.sleep(self.retry_delay_seconds)
                continue

            last_event = extract_last_event_from_text(page_text)
            if not last_event:
                return TrackingResult.not_located(nf, cnpj)
            return TrackingResult(
                status=classify_status(last_event),
                last_event=last_event,
                has_occurrence=detect_occurrence(last_event),
            )

        raise CaptchaNotSolvedException(
            f"Portal CAPTCHA not solved after {max_attempts} attempts",
            details={"portal": EXPRESSO_SAO_MIGUEL, "invoice_number": nf}
        )

    async def _submit_form(self, page, attempt: int, cnpj: str, nf: str) -> Optional[str]:
        """
        One load-solve-submit cycle

        Returns:
            The rendered page text, or None when the CAPTCHA was not captured
            or was rejected by the server (worth another attempt)
        """
        navigation_timeout = self.settings.portal_navigation_timeout * 1000

        await page.add_init_script(CAPTCHA_CAPTURE_SCRIPT)
        await page.goto(self.settings.esm_portal_url, wait_until="networkidle", timeout=navigation_timeout)
        await page.wait_for_selector("#isNFE", timeout=15000)

        captcha_code = await page.evaluate(READ_CAPTURE_SCRIPT)
        if not captcha_code:
            captcha_code = await self._read_captcha_by_ocr(page)
        logger.info(f"[ESM] Attempt {attempt}: CAPTCHA {'captured' if captcha_code else 'not captured'}")
        if not captcha_code:
            return None

        await page.click("#isNFE")
        await self._fill_first(page, INVOICE_SELECTORS, nf, "invoice number")
        await self._fill_first(page, DOCUMENT_SELECTORS, cnpj, "CNPJ")
        await self._fill_first(page, CAPTCHA_SELECTORS, captcha_code, "CAPTCHA")
        logger.info(f"[ESM] Form filled: NF {nf}, CNPJ {cnpj[:4]}***")

        if not await page.evaluate(CLICK_SUBMIT_SCRIPT):
            raise RuntimeError("Portal submit button not found")

        # SPA: nessun evento di fine caricamento affidabile
        await asyncio.sleep(self.settle_seconds)

        if attempt <= 2:
            screenshot_path = os.path.join(self.settings.portal_screenshot_dir, f"esm-result-{attempt}.png")
            await page.screenshot(path=screenshot_path, full_page=True)
            logger.info(f"[ESM] Result screenshot: {screenshot_path}")

        page_text = await page.inner_text("body")
        if is_captcha_rejection(page_text):
            logger.warning(f"[ESM] Attempt {attempt}: CAPTCHA rejected by the portal")
            return None
        return page_text

    async def _read_captcha_by_ocr(self, page) -> Optional[str]:
        canvas = await page.query_selector("canvas")
        if canvas is None:
            return None
        image = await canvas.screenshot()
        return await asyncio.to_thread(self.captcha_solver.solve, image)

    @staticmethod
    async def _fill_first(page, selectors: Sequence[str], value: str, field_name: str) -> None:
        for selector in selectors:
            element = await page.query_selector(selector)
            if element is not None:
                await element.fill(value)
                return
        raise RuntimeError(f"Portal field not found: {field_name}")
